"""
Vault exceptions.

Every failure raised by the crypto engine or the vault derives from
``VaultError``. Classes also inherit the builtin a caller would naturally
catch (``ValueError`` for bad input, ``KeyError`` for a lookup miss) so
existing ``except`` clauses keep working.
"""


class VaultError(Exception):
    """Base exception for vault and crypto errors."""


class InvalidArgumentError(VaultError, ValueError):
    """Empty or malformed caller input (names, values, keys, IVs)."""


class KeyNotFoundError(VaultError, KeyError):
    """Vault lookup miss."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class AuthenticationFailedError(VaultError):
    """Tag mismatch on decrypt."""


class MalformedInputError(VaultError, ValueError):
    """Structurally invalid encrypted blob."""


class InvalidParameterError(VaultError, ValueError):
    """Out-of-range numeric argument to the KDF or the random generator."""


class VaultClosedError(VaultError, RuntimeError):
    """Operation attempted on a vault that was already shut down."""
