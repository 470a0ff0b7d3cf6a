"""Shared fixtures for the vault and crypto engine tests."""
import base64

import pytest

from flixora_vault import VaultConfig, create_vault
from flixora_vault.crypto.entropy import EntropyPool


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def key():
    """Fixed 32-byte key."""
    return bytes(range(32))


@pytest.fixture
def iv():
    """Fixed 16-byte IV."""
    return bytes(range(16))


@pytest.fixture
def config():
    """Fast configuration: few KDF rounds, 100 ms freshness window."""
    return VaultConfig(iterations=10, freshness_window_ms=100)


@pytest.fixture
def vault(config, clock):
    """Vault driven by the fake clock, without the background sweep."""
    v = create_vault(config, namespace="test", clock=clock, start_maintenance=False)
    yield v
    v.shutdown()


@pytest.fixture
def pool():
    return EntropyPool()


def _corrupt_entry(vault, name):
    """Flip one ciphertext byte of a stored entry in place."""
    state = vault._state
    slot = (vault.namespace, name)
    entry = state.entries[slot]
    raw = bytearray(base64.b64decode(entry.blob.data))
    raw[0] ^= 0xFF
    blob = entry.blob.model_copy(
        update={"data": base64.b64encode(bytes(raw)).decode("ascii")}
    )
    state.entries[slot] = entry.model_copy(update={"blob": blob})


@pytest.fixture
def corrupt():
    return _corrupt_entry
