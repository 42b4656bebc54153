import base64
import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import settings
from .exceptions import EncryptionError

logger = logging.getLogger(__name__)

KEY_DERIVATION_ITERATIONS = 100_000


def derive_key(passphrase: str, salt: str, iterations: int = KEY_DERIVATION_ITERATIONS) -> bytes:
    """Derive a urlsafe Fernet key from a passphrase with PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class RecordCipher:
    """Encrypts JSON-serialisable records for local HDS storage."""

    def __init__(self, key: bytes):
        self._fernet = Fernet(key)

    @classmethod
    def from_passphrase(cls, passphrase: str, salt: str) -> "RecordCipher":
        return cls(derive_key(passphrase, salt))

    def encrypt(self, record: Any) -> str:
        try:
            payload = json.dumps(record, default=str).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Record is not serialisable: {e}")
        return self._fernet.encrypt(payload).decode("ascii")

    def decrypt(self, token: str) -> Any:
        try:
            payload = self._fernet.decrypt(token.encode("ascii"))
        except InvalidToken:
            logger.error("Failed to decrypt local record: invalid key or tampered payload")
            raise EncryptionError("Invalid encryption key or corrupted payload")
        return json.loads(payload.decode("utf-8"))


def get_record_cipher() -> RecordCipher:
    return RecordCipher.from_passphrase(
        settings.HDS_ENCRYPTION_PASSPHRASE,
        settings.HDS_ENCRYPTION_SALT,
    )
