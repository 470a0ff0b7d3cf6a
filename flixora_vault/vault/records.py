"""Vault data models (ciphertext packages and usage metadata, never plaintext)."""
from pydantic import BaseModel

from ..crypto.blob import EncryptedBlob


class StoredEntry(BaseModel):
    """Encrypted value of one vault key plus its freshness timestamps."""

    blob: EncryptedBlob
    created_at_ms: int
    expires_at_ms: int

    model_config = {"frozen": True}

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at_ms


class KeyRecord(BaseModel):
    """Usage metadata for one vault key."""

    display_name: str
    created_at_ms: int
    last_accessed_ms: int
    access_count: int = 0

    model_config = {"frozen": True}

    def touched(self, now_ms: int) -> "KeyRecord":
        """Return a copy recording one more successful read at ``now_ms``."""
        return self.model_copy(
            update={
                "last_accessed_ms": now_ms,
                "access_count": self.access_count + 1,
            }
        )
