"""
Secret cipher for certificate passwords.

AES-256-CBC with PKCS7 padding and a fresh 16-byte IV per call.
Stored form: ``hex(iv) + ":" + hex(ciphertext)``. The ``:`` delimiter is the
stable on-disk format for every certificate password row.
"""

import os
from functools import lru_cache

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from backend.app.core.config import get_settings

IV_LENGTH = 16
DELIMITER = ":"


class CipherError(ValueError):
    """Raised when a stored ciphertext cannot be parsed or decrypted."""


class SecretCipher:
    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ValueError("AES-256 requires a 32-byte key")
        self._key = key

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return iv.hex() + DELIMITER + ciphertext.hex()

    def decrypt(self, stored: str) -> str:
        iv_hex, sep, body_hex = stored.partition(DELIMITER)
        if not sep:
            raise CipherError("Malformed ciphertext: missing delimiter")
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(body_hex)
        except ValueError as e:
            raise CipherError(f"Malformed ciphertext: {e}") from e

        if len(iv) != IV_LENGTH or not ciphertext or len(ciphertext) % IV_LENGTH:
            raise CipherError("Malformed ciphertext: bad IV or block length")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except ValueError as e:
            raise CipherError("Decryption failed") from e


@lru_cache
def get_cipher() -> SecretCipher:
    """Cipher bound to the configured ENCRYPTION_KEY."""
    return SecretCipher(get_settings().encryption_key.encode("utf-8"))


def encrypt(plaintext: str) -> str:
    return get_cipher().encrypt(plaintext)


def decrypt(stored: str) -> str:
    return get_cipher().decrypt(stored)
