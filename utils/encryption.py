"""
Field-level encryption for sensitive patient data

Values are encrypted with AES-256-CBC and stored as ``<iv hex>:<ciphertext hex>``.
Both directions fail closed: on any fault the input is returned unchanged and
the fault is logged, so a value is never lost, at the cost of occasionally
storing or returning it unencrypted. ``FieldCipher.decrypt_checked`` reports
whether a value was actually decrypted for callers that need to know.
"""

import logging
import os
from typing import Any, Dict, Iterable, Optional, Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

KEY_LENGTH = 32  # AES-256
IV_LENGTH = 16
KEY_FILLER = b"!"
SEPARATOR = ":"


def derive_key(secret: str) -> bytes:
    """
    Turn an arbitrary secret into a 32 byte key.

    The secret is truncated, or right-padded with ``!``. This is weak key
    derivation kept for compatibility with data already written this way.
    """
    raw = secret.encode("utf-8")[:KEY_LENGTH]
    return raw.ljust(KEY_LENGTH, KEY_FILLER)


def _cipher(key: bytes, iv: bytes) -> Cipher:
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def encrypt(plaintext: Optional[str], key: bytes) -> Optional[str]:
    """
    Encrypt ``plaintext`` under ``key`` with a fresh random IV.

    Empty and ``None`` values pass through unchanged.
    """
    if not plaintext:
        return plaintext

    try:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = _cipher(key, iv).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
    except (ValueError, TypeError) as exc:
        logger.error("Encryption failed, storing value as-is: %s", exc)
        return plaintext

    return iv.hex() + SEPARATOR + ciphertext.hex()


def decrypt_checked(encoded: Optional[str], key: bytes) -> Tuple[Optional[str], bool]:
    """Decrypt ``encoded`` and report whether decryption actually happened"""
    if not encoded or SEPARATOR not in encoded:
        return encoded, False

    iv_hex, ciphertext_hex = encoded.split(SEPARATOR, 1)
    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
        decryptor = _cipher(key, iv).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
    except ValueError as exc:
        logger.warning("Decryption failed, returning stored value: %s", exc)
        return encoded, False

    return plaintext, True


def decrypt(encoded: Optional[str], key: bytes) -> Optional[str]:
    """
    Reverse :func:`encrypt`.

    Input without a separator, or input that does not decrypt under ``key``,
    is returned unchanged.
    """
    value, _ = decrypt_checked(encoded, key)
    return value


class FieldCipher:
    """Applies the cipher to a fixed set of record fields"""

    def __init__(self, key: bytes, fields: Iterable[str] = ()):
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Encryption key must be {KEY_LENGTH} bytes")
        self._key = key
        self.fields = frozenset(fields)

    @classmethod
    def from_secret(cls, secret: str, fields: Iterable[str] = ()) -> "FieldCipher":
        return cls(derive_key(secret), fields)

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        return encrypt(plaintext, self._key)

    def decrypt(self, encoded: Optional[str]) -> Optional[str]:
        return decrypt(encoded, self._key)

    def decrypt_checked(self, encoded: Optional[str]) -> Tuple[Optional[str], bool]:
        return decrypt_checked(encoded, self._key)

    def encrypt_fields(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``values`` with the configured fields encrypted"""
        encrypted = dict(values)
        for name in self.fields.intersection(values):
            encrypted[name] = self.encrypt(values[name])
        return encrypted

    def decrypt_fields(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``values`` with the configured fields decrypted"""
        decrypted = dict(values)
        for name in self.fields.intersection(values):
            decrypted[name] = self.decrypt(values[name])
        return decrypted
