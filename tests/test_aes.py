"""
Unit Tests for the confidential field encryptor
"""
import pytest
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from eduhash.crypto.aes import FieldEncryptor, pad
from eduhash.crypto.keys import derive_symmetric_key

CARD = "4111111111111111:123"


def _decrypt(key: bytes, ciphertext_hex: str, iv_hex: str) -> str:
    # Test-only: the service itself never decrypts stored card data
    cipher = Cipher(algorithms.AES(key), modes.CBC(bytes.fromhex(iv_hex)))
    decryptor = cipher.decryptor()
    padded = decryptor.update(bytes.fromhex(ciphertext_hex)) + decryptor.finalize()
    return padded[:-padded[-1]].decode()


@pytest.fixture
def key() -> bytes:
    return derive_symmetric_key("card-secret")


class TestFieldEncryptor:
    """Test AES-256-CBC encryption of card data"""

    def test_iv_is_fresh_per_encryption(self, key):
        """Encrypting the same plaintext twice never repeats (ciphertext, iv)"""
        enc = FieldEncryptor(key)
        first = enc.encrypt(CARD)
        second = enc.encrypt(CARD)

        assert first.iv_hex != second.iv_hex
        assert first.ciphertext_hex != second.ciphertext_hex

    def test_output_is_hex_and_block_aligned(self, key):
        field = FieldEncryptor(key).encrypt(CARD)

        assert len(bytes.fromhex(field.iv_hex)) == 16
        assert len(bytes.fromhex(field.ciphertext_hex)) % 16 == 0
        assert "4111" not in field.ciphertext_hex

    def test_ciphertext_recoverable_with_key_and_iv(self, key):
        field = FieldEncryptor(key).encrypt_card("4111111111111111", "123")
        assert _decrypt(key, field.ciphertext_hex, field.iv_hex) == CARD

    def test_wire_names(self, key):
        dumped = FieldEncryptor(key).encrypt(CARD).model_dump(by_alias=True)
        assert set(dumped) == {"ciphertextHex", "ivHex"}

    def test_rejects_short_key(self):
        with pytest.raises(ValueError):
            FieldEncryptor(b"short")

    def test_no_decrypt_operation(self, key):
        assert not hasattr(FieldEncryptor(key), "decrypt")


class TestPadding:
    def test_full_block_added_when_aligned(self):
        assert pad(b"x" * 16) == b"x" * 16 + bytes([16]) * 16

    def test_partial_block(self):
        assert pad(b"abc") == b"abc" + bytes([13]) * 13
