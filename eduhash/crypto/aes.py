# eduhash/crypto/aes.py
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from eduhash.common.protocol import EncryptedField

BLOCK_SIZE = 16


# PKCS#7 padding
def pad(data: bytes, block_size: int = BLOCK_SIZE) -> bytes:
    pad_len = block_size - (len(data) % block_size)
    return data + bytes([pad_len]) * pad_len


def encrypt_cbc(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    cipher = Cipher(algorithms.AES(key), modes.CBC(iv))
    encryptor = cipher.encryptor()
    return encryptor.update(pad(plaintext)) + encryptor.finalize()


class FieldEncryptor:
    """
    Encrypts confidential payment fields (AES-256-CBC) before they are stored.

    Every call draws a fresh 16-byte IV, so encrypting the same value twice
    never yields the same (ciphertext, iv) pair. There is deliberately no
    decrypt counterpart: stored card data is a write-only record.
    """

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ValueError("AES-256 key must be 32 bytes")
        self._key = key

    def encrypt(self, plaintext: str) -> EncryptedField:
        iv = os.urandom(BLOCK_SIZE)
        ct = encrypt_cbc(self._key, iv, plaintext.encode("utf-8"))
        return EncryptedField(ciphertext_hex=ct.hex(), iv_hex=iv.hex())

    def encrypt_card(self, card_number: str, cvv: str) -> EncryptedField:
        return self.encrypt(f"{card_number}:{cvv}")
