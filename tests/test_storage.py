import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path
from tempfile import TemporaryDirectory

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hotspot_reset.core.models import RouterRecord
from hotspot_reset.core.storage import StoreError, YamlRouterStore


class YamlRouterStoreTests(unittest.TestCase):
    def test_missing_file_is_empty(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = YamlRouterStore(Path(tmpdir) / "routers.yml")
            self.assertEqual([], store.load_all())

    def test_saved_records_load_back(self) -> None:
        created = datetime(2026, 1, 5, 12, 30, tzinfo=timezone.utc)
        record = RouterRecord(
            id="0123456789abcdef01234567",
            name="Lobby",
            ip_address="10.5.50.1",
            username="admin",
            password="aa" * 16 + ":" + "bb" * 20,
            port=2222,
            created_at=created,
        )

        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "routers.yml"
            store = YamlRouterStore(path)
            store.save_all([record])

            self.assertTrue(path.exists())
            self.assertEqual([], [p.name for p in path.parent.iterdir() if p.name.startswith(".routers-")])

            loaded = store.load_all()

        self.assertEqual(1, len(loaded))
        self.assertEqual(record.id, loaded[0].id)
        self.assertEqual(record.password, loaded[0].password)
        self.assertEqual(2222, loaded[0].port)
        self.assertEqual(created, loaded[0].created_at)

    def test_invalid_structure_raises(self) -> None:
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "routers.yml"
            for content in ("- just\n- a list\n", "routers: nope\n", "routers:\n  - name: missing-fields\n"):
                with self.subTest(content=content):
                    path.write_text(content, encoding="utf-8")
                    with self.assertRaises(StoreError):
                        YamlRouterStore(path).load_all()


if __name__ == "__main__":
    unittest.main()
