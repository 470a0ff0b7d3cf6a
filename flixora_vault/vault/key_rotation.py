"""
Vault Key Rotation — re-encryption of every secret under a new master key.

All namespaces sharing the vault's storage are rotated in one pass while the
vault lock is held, so no read observes a mix of old and new keys. Entries
that cannot be decrypted under the current key are counted as errors and
dropped together with their records: once the old key is zeroed they could
never be read again.

Security Note:
    Plaintext exists in memory only during re-encryption of each entry.
    Never log plaintext or ciphertext values.
"""
import logging
from typing import Optional

from ..crypto.aes import KEY_SIZE
from ..crypto.kdf import derive_key
from ..exceptions import InvalidArgumentError, VaultClosedError, VaultError
from .secure_vault import SecureVault, _zeroize

logger = logging.getLogger("flixora.vault")


def rotate_master_key(
    vault: SecureVault,
    new_key: Optional[bytes] = None,
    passphrase: Optional[str] = None,
    salt: Optional[bytes] = None,
) -> dict:
    """Re-encrypt all secrets of ``vault`` under a new master key.

    Exactly one of ``new_key`` or ``passphrase`` may be given; with neither, a
    fresh key is drawn from the vault's random source.

    Args:
        vault: Vault (or any namespace view of it) to rotate.
        new_key: Raw 32-byte replacement key.
        passphrase: Passphrase to derive the replacement key from, using the
            vault's configured KDF mode and iteration count.
        salt: Salt for the passphrase derivation.

    Returns:
        Stats dict with keys: total, rotated, errors.

    Raises:
        InvalidArgumentError: If both sources are given or the key size is wrong.
        VaultClosedError: If the vault was shut down.
    """
    if new_key is not None and passphrase is not None:
        raise InvalidArgumentError("Pass either new_key or passphrase, not both")

    state = vault._state
    config = state.config
    if passphrase is not None:
        new_key = derive_key(
            passphrase, salt, config.iterations, KEY_SIZE,
            mode=config.kdf_mode, rng=state.rng,
        )
    elif new_key is None:
        new_key = state.rng.random_bytes(KEY_SIZE)
    if len(new_key) != KEY_SIZE:
        raise InvalidArgumentError(
            f"Master key must be exactly {KEY_SIZE} bytes, got {len(new_key)}"
        )
    replacement = bytearray(new_key)

    stats = {"total": 0, "rotated": 0, "errors": 0}
    logger.info("Starting master key rotation")

    with state.lock:
        if state.closed:
            raise VaultClosedError("Vault has been shut down")
        now = state.clock()
        rotated = {}
        for slot, entry in list(state.entries.items()):
            stats["total"] += 1
            try:
                plaintext = state.open(entry.blob)
                rotated[slot] = state.seal(plaintext, now, key=replacement)
                stats["rotated"] += 1
            except VaultError as err:
                logger.error(
                    "Error rotating key=%s namespace=%s: %s",
                    slot[1], slot[0], err,
                )
                stats["errors"] += 1
                state.records.pop(slot, None)
        state.entries = rotated
        old_key, state.master_key = state.master_key, replacement
        _zeroize(old_key)

    logger.info("Key rotation complete: %s", stats)
    return stats
