"""
NAE Test Sheets - Encryption Service
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): No random fallback key; a missing or malformed
                      ENCRYPTION_KEY raises at startup
v1.0.0 (2026-09-28): AES-256-GCM encrypt/decrypt for data at rest

Encrypted values are stored as a JSON envelope of hex strings:
    {"encrypted": ..., "iv": ..., "authTag": ...}
Decryption verifies the GCM tag and raises EncryptionError on any mismatch;
it never returns unauthenticated plaintext.
"""

import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from config import settings
from errors import EncryptionError

logger = logging.getLogger(__name__)

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32


@dataclass
class EncryptedData:
    encrypted: str
    iv: str
    auth_tag: str

    def to_json(self) -> str:
        return json.dumps({"encrypted": self.encrypted, "iv": self.iv,
                           "authTag": self.auth_tag})

    @classmethod
    def from_json(cls, text: str) -> "EncryptedData":
        try:
            data = json.loads(text)
            return cls(encrypted=data["encrypted"], iv=data["iv"],
                       auth_tag=data["authTag"])
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise EncryptionError(f"Malformed encrypted envelope: {e}") from e


class EncryptionService:
    """AES-256-GCM with a process-wide key from ENCRYPTION_KEY"""

    def __init__(self, key_hex: Optional[str] = None):
        key_hex = key_hex if key_hex is not None else settings.ENCRYPTION_KEY
        if not key_hex:
            raise EncryptionError(
                "ENCRYPTION_KEY is not set. Generate one with "
                "`python -m services.encryption` and add it to the environment."
            )
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as e:
            raise EncryptionError("ENCRYPTION_KEY must be hex encoded") from e
        if len(key) != KEY_LENGTH:
            raise EncryptionError(
                f"ENCRYPTION_KEY must be {KEY_LENGTH} bytes ({KEY_LENGTH * 2} hex chars)")
        self._aesgcm = AESGCM(key)

    def encrypt(self, text: str) -> EncryptedData:
        iv = secrets.token_bytes(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, text.encode("utf-8"), None)
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return EncryptedData(encrypted=ciphertext.hex(), iv=iv.hex(),
                             auth_tag=tag.hex())

    def decrypt(self, data: EncryptedData) -> str:
        try:
            ciphertext = bytes.fromhex(data.encrypted)
            iv = bytes.fromhex(data.iv)
            tag = bytes.fromhex(data.auth_tag)
        except (ValueError, TypeError) as e:
            raise EncryptionError("Failed to decrypt data: bad encoding") from e
        if len(tag) != AUTH_TAG_LENGTH:
            raise EncryptionError("Failed to decrypt data: bad auth tag length")
        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            logger.error("Decryption failed: authentication tag mismatch")
            raise EncryptionError("Failed to decrypt data: integrity check failed") from e
        return plaintext.decode("utf-8")

    def encrypt_text(self, text: Optional[str]) -> Optional[str]:
        """Encrypt into the JSON envelope stored in TEXT columns"""
        if text is None:
            return None
        return self.encrypt(text).to_json()

    def decrypt_text(self, stored: Optional[str]) -> Optional[str]:
        if stored is None:
            return None
        return self.decrypt(EncryptedData.from_json(stored))


_service: Optional[EncryptionService] = None


def init_encryption() -> EncryptionService:
    """Build the process-wide service; raises EncryptionError if misconfigured"""
    global _service
    _service = EncryptionService()
    logger.info("Encryption service initialized")
    return _service


def get_encryption() -> EncryptionService:
    if _service is None:
        return init_encryption()
    return _service


def reset_encryption():
    """Drop the cached service so the next call re-reads settings"""
    global _service
    _service = None


def generate_token(length: int = 32) -> str:
    """Hex-encoded random token of `length` bytes"""
    return secrets.token_hex(length)


def generate_encryption_key() -> str:
    return secrets.token_hex(KEY_LENGTH)


def secure_compare(a: str, b: str) -> bool:
    """Constant-time string comparison"""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


if __name__ == "__main__":
    print("Generated Encryption Key (add to .env file):")
    print(f"ENCRYPTION_KEY={generate_encryption_key()}")
