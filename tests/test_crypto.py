import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hotspot_reset.core.config import ConfigError
from hotspot_reset.core.crypto import (
    CredentialCipher,
    CredentialDecryptError,
    CredentialFormatError,
    generate_key,
)

KEY = "0123456789abcdef0123456789abcdef"
OTHER_KEY = "fedcba9876543210fedcba9876543210"


class CredentialCipherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.cipher = CredentialCipher(KEY)

    def test_round_trip(self) -> None:
        for plaintext in ("s3cret-pass", "", "pässwörd with spaces", "a:b:c"):
            with self.subTest(plaintext=plaintext):
                self.assertEqual(plaintext, self.cipher.decrypt(self.cipher.encrypt(plaintext)))

    def test_encrypt_uses_fresh_nonce(self) -> None:
        first = self.cipher.encrypt("router-password")
        second = self.cipher.encrypt("router-password")

        self.assertNotEqual(first, second)
        self.assertNotEqual(first.split(":")[0], second.split(":")[0])
        self.assertEqual(32, len(first.split(":")[0]))

    def test_token_does_not_contain_plaintext(self) -> None:
        token = self.cipher.encrypt("router-password")
        self.assertNotIn("router-password", token)
        self.assertNotIn("router-password".encode().hex(), token)

    def test_malformed_tokens_raise_format_error(self) -> None:
        valid_nonce = "00" * 16
        for token in (
            "no-delimiter",
            f"{valid_nonce}:aa:bb",
            f"{valid_nonce}:",
            ":abcd",
            f"{valid_nonce}:not-hex",
            "abcd:abcdef",
            "",
        ):
            with self.subTest(token=token):
                with self.assertRaises(CredentialFormatError):
                    self.cipher.decrypt(token)

    def test_wrong_key_raises_decrypt_error(self) -> None:
        token = self.cipher.encrypt("router-password")

        with self.assertRaises(CredentialDecryptError):
            CredentialCipher(OTHER_KEY).decrypt(token)

    def test_tampered_payload_raises_decrypt_error(self) -> None:
        nonce, payload = self.cipher.encrypt("router-password").split(":")
        flipped = f"{int(payload[0], 16) ^ 1:x}" + payload[1:]

        with self.assertRaises(CredentialDecryptError):
            self.cipher.decrypt(f"{nonce}:{flipped}")

    def test_key_must_be_32_bytes(self) -> None:
        for key in ("", "short", KEY + "x", b"\x00" * 16):
            with self.subTest(key=key):
                with self.assertRaises(ConfigError):
                    CredentialCipher(key)

    def test_hex_and_raw_keys_are_accepted(self) -> None:
        hex_key = generate_key()
        self.assertEqual(64, len(hex_key))
        int(hex_key, 16)

        hex_cipher = CredentialCipher(hex_key)
        raw_cipher = CredentialCipher(bytes.fromhex(hex_key))
        self.assertEqual("pw-123456", raw_cipher.decrypt(hex_cipher.encrypt("pw-123456")))

    def test_repr_hides_key(self) -> None:
        self.assertNotIn(KEY, repr(self.cipher))


if __name__ == "__main__":
    unittest.main()
