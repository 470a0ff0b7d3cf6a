"""
EncryptedBlob — the ciphertext package exchanged with collaborators.

All three fields are base64 strings. The blob is deliberately lenient at
construction time; structural checks (decoded lengths, block alignment) happen
in ``decrypt`` so a tampered or truncated blob surfaces as
``MalformedInputError`` at the point of use.
"""
import base64
import binascii
from typing import Any, Optional

import orjson
from pydantic import BaseModel

from ..exceptions import MalformedInputError

# Field name used by earlier releases for the tag.
_LEGACY_TAG_KEY = "authTag"


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: str, field: str) -> bytes:
    """Strictly decode a base64 field, raising MalformedInputError."""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as err:
        raise MalformedInputError(f"Field '{field}' is not valid base64") from err


class EncryptedBlob(BaseModel):
    """One ciphertext package: ``iv``, ``data`` and an optional ``tag``."""

    iv: str
    data: str
    tag: Optional[str] = None

    model_config = {"frozen": True}

    def __repr__(self) -> str:
        return (
            f"EncryptedBlob(data_len={len(self.data)}, "
            f"tagged={self.tag is not None})"
        )

    def to_dict(self) -> dict[str, str]:
        out = {"iv": self.iv, "data": self.data}
        if self.tag is not None:
            out["tag"] = self.tag
        return out

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "EncryptedBlob":
        try:
            tag = payload.get("tag", payload.get(_LEGACY_TAG_KEY))
            return cls(iv=payload["iv"], data=payload["data"], tag=tag)
        except (KeyError, AttributeError, ValueError) as err:
            raise MalformedInputError(f"Invalid encrypted blob: {err}") from err

    @classmethod
    def from_json(cls, raw: bytes | str) -> "EncryptedBlob":
        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise MalformedInputError("Encrypted blob is not valid JSON") from err
        if not isinstance(payload, dict):
            raise MalformedInputError("Encrypted blob must be a JSON object")
        return cls.from_dict(payload)
