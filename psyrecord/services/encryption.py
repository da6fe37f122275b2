"""
At-rest encryption for stored session documents.

Attachments (reports, consent forms, test sheets) are clinical content, so
the local blob store never writes them in the clear. The key comes from the
environment; without one, an ephemeral key is generated, which is only
suitable for development and tests.
"""

import logging

from cryptography.fernet import Fernet, InvalidToken

from psyrecord.errors import StorageError

logger = logging.getLogger(__name__)


class EncryptionService:
    """Wraps Fernet symmetric encryption for document blobs."""

    def __init__(self, key: str | bytes | None = None):
        if key:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        else:
            logger.warning("No storage encryption key configured; using an ephemeral key")
            self._fernet = Fernet(Fernet.generate_key())

    def encrypt(self, data: bytes) -> bytes:
        if not data:
            return b""
        return self._fernet.encrypt(data)

    def decrypt(self, token: bytes) -> bytes:
        if not token:
            return b""
        try:
            return self._fernet.decrypt(token)
        except InvalidToken as exc:
            raise StorageError("Stored document could not be decrypted") from exc
