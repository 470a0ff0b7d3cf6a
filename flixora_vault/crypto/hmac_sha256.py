"""
HMAC-SHA256 Keyed-Hash Engine built on the local SHA-256.

``HMAC(K, m) = H((K ^ opad) || H((K ^ ipad) || m))`` with ipad ``0x36`` and
opad ``0x5c``. Keys longer than the 64-byte block are digested first; shorter
keys are zero-padded.
"""
from .sha256 import BLOCK_SIZE, DIGEST_SIZE, Sha256, sha256

_IPAD = 0x36
_OPAD = 0x5C


def _prepare_key(key: bytes) -> bytes:
    key = bytes(key)
    if len(key) > BLOCK_SIZE:
        key = sha256(key)
    return key.ljust(BLOCK_SIZE, b"\x00")


class HmacSha256:
    """HMAC bound to one key.

    Both pad blocks are compressed once at construction; every ``mac()`` call
    then starts from copies of those midstates. Loops that authenticate many
    messages under the same key (the KDF) rely on this.
    """

    digest_size = DIGEST_SIZE

    __slots__ = ("_inner", "_outer")

    def __init__(self, key: bytes) -> None:
        block = _prepare_key(key)
        self._inner = Sha256(bytes(b ^ _IPAD for b in block))
        self._outer = Sha256(bytes(b ^ _OPAD for b in block))

    def mac(self, message: bytes) -> bytes:
        inner = self._inner.copy()
        inner.update(message)
        outer = self._outer.copy()
        outer.update(inner.digest())
        return outer.digest()


def hmac_sha256(key: bytes, message: bytes) -> bytes:
    """Return the 32-byte HMAC-SHA256 of ``message`` under ``key``."""
    return HmacSha256(key).mac(message)
