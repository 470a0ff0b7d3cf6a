"""
SHA-256 Digest Engine — pure-Python compression function.

Implements FIPS 180-4 SHA-256 with a hashlib-like incremental interface so
callers can snapshot a midstate with ``copy()`` (the HMAC engine uses this to
avoid re-compressing the pad blocks on every call).
"""
import struct

BLOCK_SIZE = 64
DIGEST_SIZE = 32

_MASK = 0xFFFFFFFF

_K = (
    0x428a2f98, 0x71374491, 0xb5c0fbcf, 0xe9b5dba5,
    0x3956c25b, 0x59f111f1, 0x923f82a4, 0xab1c5ed5,
    0xd807aa98, 0x12835b01, 0x243185be, 0x550c7dc3,
    0x72be5d74, 0x80deb1fe, 0x9bdc06a7, 0xc19bf174,
    0xe49b69c1, 0xefbe4786, 0x0fc19dc6, 0x240ca1cc,
    0x2de92c6f, 0x4a7484aa, 0x5cb0a9dc, 0x76f988da,
    0x983e5152, 0xa831c66d, 0xb00327c8, 0xbf597fc7,
    0xc6e00bf3, 0xd5a79147, 0x06ca6351, 0x14292967,
    0x27b70a85, 0x2e1b2138, 0x4d2c6dfc, 0x53380d13,
    0x650a7354, 0x766a0abb, 0x81c2c92e, 0x92722c85,
    0xa2bfe8a1, 0xa81a664b, 0xc24b8b70, 0xc76c51a3,
    0xd192e819, 0xd6990624, 0xf40e3585, 0x106aa070,
    0x19a4c116, 0x1e376c08, 0x2748774c, 0x34b0bcb5,
    0x391c0cb3, 0x4ed8aa4a, 0x5b9cca4f, 0x682e6ff3,
    0x748f82ee, 0x78a5636f, 0x84c87814, 0x8cc70208,
    0x90befffa, 0xa4506ceb, 0xbef9a3f7, 0xc67178f2,
)

_H0 = (
    0x6a09e667, 0xbb67ae85, 0x3c6ef372, 0xa54ff53a,
    0x510e527f, 0x9b05688c, 0x1f83d9ab, 0x5be0cd19,
)

_WORDS = struct.Struct(">16L")
_STATE = struct.Struct(">8L")


def _rotr(x: int, n: int) -> int:
    return ((x >> n) | (x << (32 - n))) & _MASK


def _compress(state: tuple, chunk: bytes) -> tuple:
    """Run the 64-round mixing schedule over one 64-byte chunk."""
    w = list(_WORDS.unpack(chunk))
    for j in range(16, 64):
        x = w[j - 15]
        y = w[j - 2]
        s0 = _rotr(x, 7) ^ _rotr(x, 18) ^ (x >> 3)
        s1 = _rotr(y, 17) ^ _rotr(y, 19) ^ (y >> 10)
        w.append((w[j - 16] + s0 + w[j - 7] + s1) & _MASK)

    a, b, c, d, e, f, g, h = state
    for j in range(64):
        s1 = _rotr(e, 6) ^ _rotr(e, 11) ^ _rotr(e, 25)
        ch = (e & f) ^ (~e & g)
        temp1 = (h + s1 + ch + _K[j] + w[j]) & _MASK
        s0 = _rotr(a, 2) ^ _rotr(a, 13) ^ _rotr(a, 22)
        maj = (a & b) ^ (a & c) ^ (b & c)
        temp2 = (s0 + maj) & _MASK
        h = g
        g = f
        f = e
        e = (d + temp1) & _MASK
        d = c
        c = b
        b = a
        a = (temp1 + temp2) & _MASK

    return (
        (state[0] + a) & _MASK,
        (state[1] + b) & _MASK,
        (state[2] + c) & _MASK,
        (state[3] + d) & _MASK,
        (state[4] + e) & _MASK,
        (state[5] + f) & _MASK,
        (state[6] + g) & _MASK,
        (state[7] + h) & _MASK,
    )


class Sha256:
    """Incremental SHA-256 with the hashlib object surface."""

    name = "sha256"
    block_size = BLOCK_SIZE
    digest_size = DIGEST_SIZE

    __slots__ = ("_state", "_buffer", "_length")

    def __init__(self, data: bytes = b"") -> None:
        self._state = _H0
        self._buffer = b""
        self._length = 0
        if data:
            self.update(data)

    def update(self, data: bytes) -> None:
        data = bytes(data)
        self._length += len(data)
        buf = self._buffer + data
        full = len(buf) - (len(buf) % BLOCK_SIZE)
        state = self._state
        for offset in range(0, full, BLOCK_SIZE):
            state = _compress(state, buf[offset:offset + BLOCK_SIZE])
        self._state = state
        self._buffer = buf[full:]

    def copy(self) -> "Sha256":
        clone = Sha256.__new__(Sha256)
        clone._state = self._state
        clone._buffer = self._buffer
        clone._length = self._length
        return clone

    def digest(self) -> bytes:
        """Pad a copy of the running state and return the 32-byte digest.

        Padding is a single 0x80 marker, zero fill up to 56 mod 64, then the
        message length in bits as an 8-byte big-endian integer.
        """
        bit_length = (self._length * 8) & 0xFFFFFFFFFFFFFFFF
        tail = self._buffer + b"\x80"
        tail += b"\x00" * ((56 - len(tail)) % BLOCK_SIZE)
        tail += struct.pack(">Q", bit_length)
        state = self._state
        for offset in range(0, len(tail), BLOCK_SIZE):
            state = _compress(state, tail[offset:offset + BLOCK_SIZE])
        return _STATE.pack(*state)

    def hexdigest(self) -> str:
        return self.digest().hex()


def sha256(data: bytes) -> bytes:
    """Return the 32-byte SHA-256 digest of ``data``."""
    return Sha256(data).digest()
