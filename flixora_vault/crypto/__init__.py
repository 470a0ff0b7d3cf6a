"""
Flixora Crypto Engine
=====================

Self-contained primitives used by the vault:

    1. SHA-256 digest and HMAC-SHA256 keyed hash
    2. Password-based key derivation (legacy scheme and canonical PBKDF2)
    3. Pooled random generator
    4. AES-256-CBC with PKCS7 padding and a 16-byte tag

WARNING: The default tag (``xor``) and KDF (``pbkdf2-legacy``) exist for
         compatibility with data encrypted by earlier releases. They are not
         standard constructions; see the module docstrings.
"""

from .sha256 import Sha256, sha256
from .hmac_sha256 import HmacSha256, hmac_sha256
from .kdf import derive_key, KDF_LEGACY, KDF_PBKDF2
from .entropy import (
    RandomSource,
    EntropyPool,
    SystemRandomSource,
    random_bytes,
    random_int,
    random_string,
)
from .blob import EncryptedBlob
from .aes import Aes256, encrypt, decrypt, TAG_XOR, TAG_HMAC

__all__ = [
    "Sha256",
    "sha256",
    "HmacSha256",
    "hmac_sha256",
    "derive_key",
    "KDF_LEGACY",
    "KDF_PBKDF2",
    "RandomSource",
    "EntropyPool",
    "SystemRandomSource",
    "random_bytes",
    "random_int",
    "random_string",
    "EncryptedBlob",
    "Aes256",
    "encrypt",
    "decrypt",
    "TAG_XOR",
    "TAG_HMAC",
]
