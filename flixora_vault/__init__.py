"""Flixora Vault.

Self-contained AES-256 / PBKDF2 crypto engine and an in-memory secure key
vault for the onboarding and payment layers.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    InvalidArgumentError,
    KeyNotFoundError,
    AuthenticationFailedError,
    MalformedInputError,
    InvalidParameterError,
    VaultClosedError,
)
from .crypto import (
    EncryptedBlob,
    EntropyPool,
    SystemRandomSource,
    encrypt,
    decrypt,
    derive_key,
    random_bytes,
    random_int,
    random_string,
)
from .vault import (
    SecureVault,
    VaultConfig,
    KeyRecord,
    StoredEntry,
    create_vault,
    generate_master_key,
    rotate_master_key,
)

__all__ = (
    "__version__",
    "VaultError",
    "InvalidArgumentError",
    "KeyNotFoundError",
    "AuthenticationFailedError",
    "MalformedInputError",
    "InvalidParameterError",
    "VaultClosedError",
    "EncryptedBlob",
    "EntropyPool",
    "SystemRandomSource",
    "encrypt",
    "decrypt",
    "derive_key",
    "random_bytes",
    "random_int",
    "random_string",
    "SecureVault",
    "VaultConfig",
    "KeyRecord",
    "StoredEntry",
    "create_vault",
    "generate_master_key",
    "rotate_master_key",
)
