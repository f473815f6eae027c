import os
import sys
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hotspot_reset.core.config import ENCRYPTION_KEY_ENV, ConfigError, load_settings

KEY = "0123456789abcdef0123456789abcdef"


class LoadSettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.config_path = Path(self.tmpdir.name) / "local.yml"
        patcher = mock.patch.dict(os.environ, {}, clear=False)
        patcher.start()
        self.addCleanup(patcher.stop)
        os.environ.pop(ENCRYPTION_KEY_ENV, None)

    def _write(self, content: str) -> Path:
        self.config_path.write_text(content, encoding="utf-8")
        return self.config_path

    def test_reads_local_yml(self) -> None:
        store = Path(self.tmpdir.name) / "routers.yml"
        self._write(
            f"crypto:\n  encryption_key: {KEY}\n"
            f"store:\n  path: {store}\n"
            "mikrotik:\n  timeout: 3\n  mac_strategy: user-profile\n"
        )

        settings = load_settings(self.config_path)

        self.assertEqual(KEY, settings.encryption_key)
        self.assertEqual(store, settings.store_path)
        self.assertEqual(3.0, settings.timeout)
        self.assertEqual("user-profile", settings.mac_strategy)
        self.assertNotIn(KEY, repr(settings))

    def test_environment_overrides_file(self) -> None:
        self._write("crypto:\n  encryption_key: from-file\n")
        os.environ[ENCRYPTION_KEY_ENV] = KEY

        self.assertEqual(KEY, load_settings(self.config_path).encryption_key)

    def test_store_argument_wins(self) -> None:
        self._write(f"crypto:\n  encryption_key: {KEY}\nstore:\n  path: /tmp/from-file.yml\n")
        override = Path(self.tmpdir.name) / "cli.yml"

        self.assertEqual(override, load_settings(self.config_path, override).store_path)

    def test_missing_key_fails(self) -> None:
        self._write("mikrotik:\n  timeout: 5\n")

        with self.assertRaises(ConfigError):
            load_settings(self.config_path)

    def test_missing_file_without_env_fails(self) -> None:
        with self.assertRaises(ConfigError):
            load_settings(Path(self.tmpdir.name) / "absent.yml")

    def test_invalid_values_fail(self) -> None:
        for content in (
            f"crypto:\n  encryption_key: {KEY}\nmikrotik:\n  timeout: -1\n",
            f"crypto:\n  encryption_key: {KEY}\nmikrotik:\n  mac_strategy: both\n",
            f"crypto: [{KEY}]\n",
            "- not a mapping\n",
        ):
            with self.subTest(content=content):
                self._write(content)
                with self.assertRaises(ConfigError):
                    load_settings(self.config_path)


if __name__ == "__main__":
    unittest.main()
