"""
Entropy Pool — pooled pseudo-random byte generator.

The pool is a 512-byte buffer filled from the fallback source once at
construction and drawn down by a cursor. When the cursor hits the end the
pool is reseeded: a small entropy sample (wall clock, heap usage,
high-resolution timer, 16 fallback bytes) is XOR-blended into the existing
pool, position by position, wrapping over the sample length.

Security Note:
    The blended sources are small and partially predictable. The fallback
    bytes come from the OS CSPRNG, which is what carries the unpredictability.
    Consecutive passes over the pool differ only by one sample, so output of
    one pass is related to the next. The vault draws keys and IVs from
    ``SystemRandomSource`` unless a pool is injected explicitly.
"""
import os
import sys
import time
import secrets
import threading
from typing import Callable

from ..exceptions import InvalidParameterError

POOL_SIZE = 512
FALLBACK_SAMPLE_SIZE = 16
ALPHANUMERIC = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789"
)


class RandomSource:
    """Base class for byte sources; derives integers and strings from bytes."""

    def random_bytes(self, length: int) -> bytes:
        raise NotImplementedError

    def random_int(self, minimum: int, maximum: int) -> int:
        """Return an integer in ``[minimum, maximum)``.

        Four bytes are read as an unsigned big-endian integer and reduced
        modulo the range. Ranges wider than 2**32 are rejected.
        """
        span = maximum - minimum
        if span <= 0:
            raise InvalidParameterError(
                f"random_int requires max > min (got min={minimum}, max={maximum})"
            )
        if span > 0x100000000:
            raise InvalidParameterError(
                f"random_int range {span} exceeds 2**32"
            )
        value = int.from_bytes(self.random_bytes(4), "big")
        return minimum + (value % span)

    def random_string(self, length: int) -> str:
        """Return ``length`` characters from the 62-character alphanumeric set."""
        data = self.random_bytes(length)
        return "".join(ALPHANUMERIC[b % len(ALPHANUMERIC)] for b in data)

    @staticmethod
    def _check_length(length: int) -> None:
        if length < 0:
            raise InvalidParameterError(
                f"Byte count must be non-negative, got {length}"
            )


class SystemRandomSource(RandomSource):
    """Random source backed directly by ``os.urandom``."""

    def random_bytes(self, length: int) -> bytes:
        self._check_length(length)
        return os.urandom(length)


class EntropyPool(RandomSource):
    """Pooled generator with XOR-blended reseeding.

    Args:
        pool_size: Size of the pool in bytes (512 by default).
        fallback: Callable returning ``n`` bytes. It fills the pool once and
            is mixed into every reseed.
    """

    def __init__(
        self,
        pool_size: int = POOL_SIZE,
        fallback: Callable[[int], bytes] = secrets.token_bytes,
    ) -> None:
        if pool_size <= 0:
            raise InvalidParameterError(
                f"pool_size must be positive, got {pool_size}"
            )
        self._pool = bytearray(fallback(pool_size))
        self._cursor = 0
        self._fallback = fallback
        self._lock = threading.Lock()
        self._reseeds = 0
        self.reseed()

    @property
    def reseed_count(self) -> int:
        return self._reseeds

    def collect_entropy(self) -> bytes:
        """Assemble one entropy sample."""
        sample = bytearray()
        now_ms = time.time_ns() // 1_000_000
        sample += bytes((now_ms >> shift) & 0xFF for shift in (0, 8, 16, 24))
        if hasattr(sys, "getallocatedblocks"):
            heap = sys.getallocatedblocks()
            sample += bytes((heap & 0xFF, (heap >> 8) & 0xFF))
        timer_ms = time.perf_counter_ns() // 1_000_000
        sample += bytes((timer_ms & 0xFF, (timer_ms // 256) & 0xFF))
        sample += self._fallback(FALLBACK_SAMPLE_SIZE)
        return bytes(sample)

    def reseed(self) -> None:
        with self._lock:
            self._reseed_locked()

    def _reseed_locked(self) -> None:
        entropy = self.collect_entropy()
        width = len(entropy)
        pool = self._pool
        for i in range(len(pool)):
            pool[i] ^= entropy[i % width]
        self._cursor = 0
        self._reseeds += 1

    def random_bytes(self, length: int) -> bytes:
        self._check_length(length)
        out = bytearray()
        with self._lock:
            while len(out) < length:
                if self._cursor >= len(self._pool):
                    self._reseed_locked()
                take = min(length - len(out), len(self._pool) - self._cursor)
                out += self._pool[self._cursor:self._cursor + take]
                self._cursor += take
        return bytes(out)


# Process-wide pool behind the module-level conveniences. Components that own
# secrets (the vault, explicit callers) receive their own source instead.
_process_pool = EntropyPool()


def random_bytes(length: int, source: RandomSource | None = None) -> bytes:
    return (source or _process_pool).random_bytes(length)


def random_int(minimum: int, maximum: int, source: RandomSource | None = None) -> int:
    return (source or _process_pool).random_int(minimum, maximum)


def random_string(length: int, source: RandomSource | None = None) -> str:
    return (source or _process_pool).random_string(length)
