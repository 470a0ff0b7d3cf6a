"""
Key Derivation Engine — password-based key derivation over HMAC-SHA256.

Two modes are available:

``pbkdf2-legacy``
    The scheme already deployed with existing vault data. It is *not*
    RFC 8018 PBKDF2: after an initial ``u = HMAC(P, salt)`` it repeatedly
    re-hashes the running output (``u = HMAC(P, u)``) and XORs every round
    into the key buffer. There is no block index: only the first 32 bytes
    accumulate, and any requested bytes past one digest stay zero.

``pbkdf2``
    Canonical PBKDF2-HMAC-SHA256 (RFC 8018 section 5.2).

The two are not interchangeable: keys derived under one mode never match the
other. Pick one per vault and keep it.
"""
import logging
from typing import Optional

from ..exceptions import InvalidParameterError
from .entropy import RandomSource, random_bytes
from .hmac_sha256 import HmacSha256
from .sha256 import DIGEST_SIZE

logger = logging.getLogger("flixora.crypto")

KDF_LEGACY = "pbkdf2-legacy"
KDF_PBKDF2 = "pbkdf2"
KDF_MODES = (KDF_LEGACY, KDF_PBKDF2)

DEFAULT_ITERATIONS = 100_000
DEFAULT_KEY_LENGTH = 32
SALT_SIZE = 16


def _legacy_derive(prf: HmacSha256, salt: bytes, iterations: int, key_length: int) -> bytes:
    derived = bytearray(key_length)
    width = min(key_length, DIGEST_SIZE)
    u = prf.mac(salt)
    for _ in range(iterations):
        u = prf.mac(u)
        for j in range(width):
            derived[j] ^= u[j]
    return bytes(derived)


def _pbkdf2_derive(prf: HmacSha256, salt: bytes, iterations: int, key_length: int) -> bytes:
    blocks = -(-key_length // DIGEST_SIZE)
    output = bytearray()
    for index in range(1, blocks + 1):
        u = prf.mac(salt + index.to_bytes(4, "big"))
        acc = int.from_bytes(u, "big")
        for _ in range(iterations - 1):
            u = prf.mac(u)
            acc ^= int.from_bytes(u, "big")
        output += acc.to_bytes(DIGEST_SIZE, "big")
    return bytes(output[:key_length])


def derive_key(
    password: str | bytes,
    salt: Optional[bytes] = None,
    iterations: int = DEFAULT_ITERATIONS,
    key_length: int = DEFAULT_KEY_LENGTH,
    digest: str = "sha256",
    *,
    mode: str = KDF_LEGACY,
    rng: Optional[RandomSource] = None,
) -> bytes:
    """Derive ``key_length`` bytes from a password.

    Args:
        password: Passphrase; ``str`` values are UTF-8 encoded.
        salt: Salt bytes. When omitted, 16 bytes are drawn from ``rng`` (or the
            process pool), which makes the result non-reproducible.
        iterations: Number of HMAC rounds (at least 1).
        key_length: Requested output length in bytes.
        digest: ``"sha256"`` or ``"sha512"``. Accepted for compatibility;
            both modes always use HMAC-SHA256.
        mode: ``"pbkdf2-legacy"`` or ``"pbkdf2"``.
        rng: Random source for the default salt.

    Returns:
        Derived key of exactly ``key_length`` bytes. In legacy mode bytes
        past the first 32 are zero.

    Raises:
        InvalidParameterError: On a non-positive length, fewer than one
            iteration or an unknown mode.
    """
    if key_length <= 0:
        raise InvalidParameterError(
            f"key_length must be positive, got {key_length}"
        )
    if iterations < 1:
        raise InvalidParameterError(
            f"iterations must be at least 1, got {iterations}"
        )
    if digest.lower() != "sha256":
        logger.debug("Digest %s requested; deriving with HMAC-SHA256", digest)
    if mode not in KDF_MODES:
        raise InvalidParameterError(f"Unsupported key derivation mode: {mode}")

    if isinstance(password, str):
        password = password.encode("utf-8")
    if salt is None:
        salt = random_bytes(SALT_SIZE, rng)

    prf = HmacSha256(password)
    if mode == KDF_LEGACY:
        return _legacy_derive(prf, bytes(salt), iterations, key_length)
    return _pbkdf2_derive(prf, bytes(salt), iterations, key_length)
