"""Secure Vault — encrypted in-memory secret storage.

Security Note (Threat Model):
    Secrets are held as AES-256 ciphertext under a master key that lives in
    process memory for the vault's lifetime. A memory dump of the process
    exposes the master key and therefore every secret. This is an accepted
    limitation; the vault is ephemeral and never persists anything.
"""

from .secure_vault import SecureVault, create_vault, DEFAULT_NAMESPACE
from .key_rotation import rotate_master_key
from .config import VaultConfig, generate_master_key
from .records import KeyRecord, StoredEntry
from .maintenance import MaintenanceTask

__all__ = [
    "SecureVault",
    "create_vault",
    "DEFAULT_NAMESPACE",
    "rotate_master_key",
    "VaultConfig",
    "generate_master_key",
    "KeyRecord",
    "StoredEntry",
    "MaintenanceTask",
]
