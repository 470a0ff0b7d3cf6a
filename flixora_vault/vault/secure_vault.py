"""
SecureVault — namespaced in-memory key-value store for secrets.

Provides the public API for the vault:
- ``store(name, value)`` — encrypt and keep a secret
- ``get(name)`` — decrypt and return a secret, refreshing stale ciphertext
- ``has_key(name)`` / ``keys()`` / ``metadata(name)`` — inspect without decrypting
- ``remove(name)`` / ``wipe_all()`` — delete secrets
- ``shutdown()`` — stop maintenance, wipe everything, zero the master key
- ``create_vault(...)`` — factory deriving or generating the master key

Values are held only as EncryptedBlob packages under the vault's master key.
An entry older than the freshness window is re-encrypted with a fresh IV on
the next read, and a background sweep refreshes entries nobody reads.

Security Note:
    Never log plaintext or ciphertext values. Only log key names, namespaces
    and counts. Decrypted values exist in process memory while the caller
    holds them, and Python cannot guarantee earlier copies of the master key
    are erased.
"""
import time
import logging
import threading
from typing import Callable, Optional

from ..crypto.aes import KEY_SIZE, decrypt, encrypt
from ..crypto.blob import EncryptedBlob
from ..crypto.entropy import RandomSource, SystemRandomSource
from ..crypto.kdf import derive_key
from ..exceptions import (
    InvalidArgumentError,
    KeyNotFoundError,
    VaultClosedError,
    VaultError,
)
from .config import VaultConfig
from .maintenance import MaintenanceTask
from .records import KeyRecord, StoredEntry

logger = logging.getLogger("flixora.vault")

DEFAULT_NAMESPACE = "default"

Clock = Callable[[], int]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _zeroize(buffer: bytearray) -> None:
    buffer[:] = bytes(len(buffer))


class _VaultState:
    """Storage and key material shared by a vault and its namespace views.

    Both maps are keyed by ``(namespace, name)`` and are only mutated while
    ``lock`` is held, so an entry and its record always change together.
    """

    def __init__(
        self,
        config: VaultConfig,
        master_key: bytearray,
        rng: RandomSource,
        clock: Clock,
    ) -> None:
        self.config = config
        self.master_key = master_key
        self.rng = rng
        self.clock = clock
        self.entries: dict[tuple[str, str], StoredEntry] = {}
        self.records: dict[tuple[str, str], KeyRecord] = {}
        self.lock = threading.RLock()
        self.closed = False
        self.maintenance: Optional[MaintenanceTask] = None

    def seal(self, value: str, now: int, key: Optional[bytes] = None) -> StoredEntry:
        blob = encrypt(
            value,
            self.master_key if key is None else key,
            tag_mode=self.config.tag_mode,
            rng=self.rng,
        )
        return StoredEntry(
            blob=blob,
            created_at_ms=now,
            expires_at_ms=now + self.config.freshness_window_ms,
        )

    def open(self, blob: EncryptedBlob) -> str:
        return decrypt(blob, self.master_key, tag_mode=self.config.tag_mode)

    def sweep(self) -> int:
        """Re-encrypt every expired entry; failures are logged and skipped."""
        with self.lock:
            if self.closed:
                return 0
            now = self.clock()
            refreshed = 0
            for slot, entry in list(self.entries.items()):
                if not entry.is_expired(now):
                    continue
                try:
                    self.entries[slot] = self.seal(self.open(entry.blob), now)
                    refreshed += 1
                except VaultError as err:
                    logger.error(
                        "Re-encryption failed for key=%s namespace=%s: %s",
                        slot[1], slot[0], err,
                    )
        if refreshed:
            logger.info("Re-encrypted %d expired vault key(s)", refreshed)
        return refreshed

    def stop_maintenance(self) -> None:
        task, self.maintenance = self.maintenance, None
        if task is not None:
            task.stop()


class SecureVault:
    """Encrypted key-value vault scoped to one namespace.

    Instances built with ``scoped()`` share storage, master key, lock and
    maintenance task with the vault that created them; only the namespace
    differs. Shutting down any of them shuts down the shared storage.

    Args:
        config: Validated vault configuration.
        master_key: 32-byte master key; copied into a vault-owned buffer.
        namespace: Namespace prefix for every key name.
        rng: Random source for IVs (``SystemRandomSource`` by default).
        clock: Callable returning the current time in milliseconds.
        start_maintenance: Start the periodic re-encryption sweep.
    """

    def __init__(
        self,
        config: VaultConfig,
        master_key: bytes | bytearray,
        namespace: str = DEFAULT_NAMESPACE,
        *,
        rng: Optional[RandomSource] = None,
        clock: Optional[Clock] = None,
        start_maintenance: bool = True,
    ) -> None:
        if len(master_key) != KEY_SIZE:
            raise InvalidArgumentError(
                f"Master key must be exactly {KEY_SIZE} bytes, got {len(master_key)}"
            )
        self._namespace = self._validate_namespace(namespace)
        self._state = _VaultState(
            config=config,
            master_key=bytearray(master_key),
            rng=rng or SystemRandomSource(),
            clock=clock or _now_ms,
        )
        if start_maintenance:
            task = MaintenanceTask(self._state.sweep, config.maintenance_interval_s)
            self._state.maintenance = task
            task.start()
        logger.info(
            "Vault created: namespace=%s cipher=%s",
            self._namespace, config.cipher_mode,
        )

    def __repr__(self) -> str:
        return (
            f"<SecureVault namespace={self._namespace!r} "
            f"keys={len(self.keys())} closed={self._state.closed}>"
        )

    def __enter__(self) -> "SecureVault":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_namespace(namespace: str) -> str:
        if not isinstance(namespace, str) or not namespace:
            raise InvalidArgumentError("Vault namespace cannot be empty")
        return namespace

    @staticmethod
    def _validate_name(name: str) -> None:
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError("Vault key name cannot be empty")

    def _slot(self, name: str) -> tuple[str, str]:
        return (self._namespace, name)

    def _ensure_open(self) -> None:
        if self._state.closed:
            raise VaultClosedError("Vault has been shut down")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def config(self) -> VaultConfig:
        return self._state.config

    @property
    def closed(self) -> bool:
        return self._state.closed

    @property
    def maintenance_running(self) -> bool:
        task = self._state.maintenance
        return task is not None and task.running

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def store(self, name: str, value: str) -> None:
        """Encrypt and store a secret, replacing any previous value.

        Raises:
            InvalidArgumentError: If name or value is empty.
            VaultClosedError: If the vault was shut down.
        """
        self._validate_name(name)
        if not isinstance(value, str) or not value:
            raise InvalidArgumentError("Vault value cannot be empty")
        state = self._state
        with state.lock:
            self._ensure_open()
            now = state.clock()
            entry = state.seal(value, now)
            slot = self._slot(name)
            state.entries[slot] = entry
            state.records[slot] = KeyRecord(
                display_name=name,
                created_at_ms=now,
                last_accessed_ms=now,
            )
        logger.debug("Vault store: namespace=%s key=%s", self._namespace, name)

    def get(self, name: str) -> str:
        """Decrypt and return a secret.

        An entry past its freshness window is re-encrypted with a new IV
        before the value is returned.

        Raises:
            KeyNotFoundError: If no entry exists for ``name``.
            AuthenticationFailedError: If the stored tag does not verify.
            VaultClosedError: If the vault was shut down.
        """
        self._validate_name(name)
        state = self._state
        with state.lock:
            self._ensure_open()
            slot = self._slot(name)
            entry = state.entries.get(slot)
            if entry is None:
                raise KeyNotFoundError(f"Key not found: {name}")
            now = state.clock()
            value = state.open(entry.blob)
            if entry.is_expired(now):
                state.entries[slot] = state.seal(value, now)
                logger.debug(
                    "Vault re-encrypted stale key: namespace=%s key=%s",
                    self._namespace, name,
                )
            state.records[slot] = state.records[slot].touched(now)
        logger.debug("Vault get: namespace=%s key=%s", self._namespace, name)
        return value

    def has_key(self, name: str) -> bool:
        with self._state.lock:
            return self._slot(name) in self._state.entries

    def remove(self, name: str) -> None:
        """Delete a secret and its record. Missing names are ignored."""
        state = self._state
        with state.lock:
            slot = self._slot(name)
            state.entries.pop(slot, None)
            removed = state.records.pop(slot, None) is not None
        if removed:
            logger.debug("Vault remove: namespace=%s key=%s", self._namespace, name)

    def wipe_all(self) -> int:
        """Delete every secret in this namespace and return how many."""
        state = self._state
        with state.lock:
            slots = [slot for slot in state.entries if slot[0] == self._namespace]
            for slot in slots:
                del state.entries[slot]
                del state.records[slot]
        logger.info(
            "Vault wiped namespace=%s (%d key(s) removed)",
            self._namespace, len(slots),
        )
        return len(slots)

    def metadata(self, name: str) -> Optional[KeyRecord]:
        with self._state.lock:
            return self._state.records.get(self._slot(name))

    def stored_entry(self, name: str) -> Optional[StoredEntry]:
        """Return the ciphertext package held for ``name``, if any."""
        with self._state.lock:
            return self._state.entries.get(self._slot(name))

    def keys(self) -> list[str]:
        with self._state.lock:
            return [
                record.display_name
                for slot, record in self._state.records.items()
                if slot[0] == self._namespace
            ]

    def sweep_expired(self) -> int:
        """Run one maintenance pass now; returns the number re-encrypted."""
        return self._state.sweep()

    def scoped(self, namespace: str) -> "SecureVault":
        """Return a view of the same vault under another namespace."""
        view = SecureVault.__new__(SecureVault)
        view._namespace = self._validate_namespace(namespace)
        view._state = self._state
        return view

    def shutdown(self) -> None:
        """Stop maintenance, wipe all entries and zero the master key.

        Safe to call more than once.
        """
        state = self._state
        if state.closed:
            return
        state.stop_maintenance()
        with state.lock:
            if state.closed:
                return
            wiped = len(state.entries)
            state.entries.clear()
            state.records.clear()
            if state.config.zeroize_on_drop:
                _zeroize(state.master_key)
            state.closed = True
        logger.info("Vault shutdown complete (%d key(s) wiped)", wiped)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_vault(
    config: Optional[VaultConfig] = None,
    source_passphrase: Optional[str] = None,
    namespace: Optional[str] = None,
    *,
    salt: Optional[bytes] = None,
    rng: Optional[RandomSource] = None,
    clock: Optional[Clock] = None,
    start_maintenance: bool = True,
) -> SecureVault:
    """Build a vault, deriving its master key from a passphrase or at random.

    Args:
        config: Vault configuration (defaults to ``VaultConfig()``).
        source_passphrase: Operator passphrase. When given, the master key is
            derived with the configured KDF mode and iteration count.
        namespace: Namespace prefix (``"default"`` when omitted).
        salt: KDF salt. Without it a random salt is used and the derived key
            cannot be reproduced by another process.
        rng: Random source shared by key generation, salts and IVs
            (``SystemRandomSource`` by default).
        clock: Millisecond clock, mainly for tests.
        start_maintenance: Start the background sweep.

    Returns:
        A ready SecureVault.
    """
    config = config or VaultConfig()
    rng = rng or SystemRandomSource()
    if source_passphrase:
        master_key = bytearray(
            derive_key(
                source_passphrase,
                salt,
                config.iterations,
                KEY_SIZE,
                mode=config.kdf_mode,
                rng=rng,
            )
        )
    else:
        master_key = bytearray(rng.random_bytes(KEY_SIZE))
    try:
        return SecureVault(
            config,
            master_key,
            namespace or DEFAULT_NAMESPACE,
            rng=rng,
            clock=clock,
            start_maintenance=start_maintenance,
        )
    finally:
        _zeroize(master_key)
