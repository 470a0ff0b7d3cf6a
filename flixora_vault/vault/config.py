"""
Vault Configuration — validated, immutable vault settings.

Settings can be read from environment variables:
    FLIXORA_VAULT_CIPHER_MODE          aes-256-cbc | aes-256-cbc-hmac
    FLIXORA_VAULT_KDF_MODE             pbkdf2-legacy | pbkdf2
    FLIXORA_VAULT_ITERATIONS           <int>
    FLIXORA_VAULT_ZEROIZE              true | false
    FLIXORA_VAULT_FRESHNESS_MS         <int>
    FLIXORA_VAULT_MAINTENANCE_INTERVAL <seconds>

Security Note:
    Never log key material. Only log modes, counts and key names.
"""
import os
import base64
import secrets
import logging

from pydantic import BaseModel, Field, field_validator

from ..crypto.aes import TAG_HMAC, TAG_XOR
from ..crypto.kdf import DEFAULT_ITERATIONS, KDF_MODES

logger = logging.getLogger("flixora.vault")

CIPHER_CBC = "aes-256-cbc"
CIPHER_CBC_HMAC = "aes-256-cbc-hmac"

# Earlier releases labelled the CBC + XOR-tag scheme "aes-256-gcm".
_CIPHER_ALIASES = {"aes-256-gcm": CIPHER_CBC}

_TAG_MODE_BY_CIPHER = {
    CIPHER_CBC: TAG_XOR,
    CIPHER_CBC_HMAC: TAG_HMAC,
}

_ENV_PREFIX = "FLIXORA_VAULT_"
_TRUE = ("1", "true", "yes", "on")


def generate_master_key() -> str:
    """Generate a random 32-byte master key and return it as base64.

    This is a utility for operators provisioning keys out of band.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    cipher_mode: str = Field(default=CIPHER_CBC)
    kdf_mode: str = Field(default="pbkdf2-legacy")
    iterations: int = Field(default=DEFAULT_ITERATIONS, ge=1)
    zeroize_on_drop: bool = Field(default=True)
    freshness_window_ms: int = Field(default=60_000, ge=1)
    maintenance_interval_s: float = Field(default=30.0, gt=0)

    model_config = {"frozen": True}

    @field_validator("cipher_mode")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Normalise legacy labels and validate the cipher mode."""
        v = _CIPHER_ALIASES.get(v.lower(), v.lower())
        if v not in _TAG_MODE_BY_CIPHER:
            raise ValueError(f"Unsupported cipher mode: {v}")
        return v

    @field_validator("kdf_mode")
    @classmethod
    def validate_kdf(cls, v: str) -> str:
        v = v.lower()
        if v not in KDF_MODES:
            raise ValueError(f"Unsupported key derivation mode: {v}")
        return v

    @property
    def tag_mode(self) -> str:
        """Tag mode the block cipher uses for this cipher mode."""
        return _TAG_MODE_BY_CIPHER[self.cipher_mode]

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from FLIXORA_VAULT_* environment variables.

        Unset variables keep their defaults.
        """
        values: dict = {}
        env = os.environ
        if f"{_ENV_PREFIX}CIPHER_MODE" in env:
            values["cipher_mode"] = env[f"{_ENV_PREFIX}CIPHER_MODE"]
        if f"{_ENV_PREFIX}KDF_MODE" in env:
            values["kdf_mode"] = env[f"{_ENV_PREFIX}KDF_MODE"]
        if f"{_ENV_PREFIX}ITERATIONS" in env:
            values["iterations"] = int(env[f"{_ENV_PREFIX}ITERATIONS"])
        if f"{_ENV_PREFIX}ZEROIZE" in env:
            values["zeroize_on_drop"] = env[f"{_ENV_PREFIX}ZEROIZE"].lower() in _TRUE
        if f"{_ENV_PREFIX}FRESHNESS_MS" in env:
            values["freshness_window_ms"] = int(env[f"{_ENV_PREFIX}FRESHNESS_MS"])
        if f"{_ENV_PREFIX}MAINTENANCE_INTERVAL" in env:
            values["maintenance_interval_s"] = float(
                env[f"{_ENV_PREFIX}MAINTENANCE_INTERVAL"]
            )
        config = cls(**values)
        logger.debug(
            "Vault config from env: cipher=%s kdf=%s iterations=%d",
            config.cipher_mode, config.kdf_mode, config.iterations,
        )
        return config
