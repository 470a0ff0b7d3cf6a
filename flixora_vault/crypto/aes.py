"""
AES-256 Block Cipher Engine — CBC chaining, PKCS7 padding, 16-byte tag.

The block transform is standard AES-256 (FIPS 197): a 60-word key schedule and
14 rounds. Chaining is CBC with PKCS7 padding, so ``data`` is interoperable
with any AES-256-CBC implementation given the same key and IV.

Tag modes:
    ``xor``   The legacy tag: a running XOR of every ciphertext byte folded
              into 16 bytes. It is keyless and does not cover the IV; it
              catches simple bit flips in ``data`` only and gives no
              cryptographic integrity.
    ``hmac``  HMAC-SHA256 over ``iv || data`` under a MAC key derived from the
              cipher key, truncated to 16 bytes. Mandatory on decrypt.

Security Note:
    Never log plaintext, keys, or ciphertext. No constant-time guarantees are
    made for the table lookups below.
"""
from typing import Optional

from ..exceptions import (
    AuthenticationFailedError,
    InvalidArgumentError,
    MalformedInputError,
)
from .blob import EncryptedBlob, b64decode, b64encode
from .entropy import RandomSource, random_bytes
from .hmac_sha256 import hmac_sha256

BLOCK_SIZE = 16
KEY_SIZE = 32
IV_SIZE = 16
TAG_SIZE = 16
ROUNDS = 14
_NK = KEY_SIZE // 4

TAG_XOR = "xor"
TAG_HMAC = "hmac"
TAG_MODES = (TAG_XOR, TAG_HMAC)

_MAC_KEY_LABEL = b"flixora-vault/aes-256-cbc/tag"

S_BOX = bytes([
    0x63, 0x7c, 0x77, 0x7b, 0xf2, 0x6b, 0x6f, 0xc5, 0x30, 0x01, 0x67, 0x2b, 0xfe, 0xd7, 0xab, 0x76,
    0xca, 0x82, 0xc9, 0x7d, 0xfa, 0x59, 0x47, 0xf0, 0xad, 0xd4, 0xa2, 0xaf, 0x9c, 0xa4, 0x72, 0xc0,
    0xb7, 0xfd, 0x93, 0x26, 0x36, 0x3f, 0xf7, 0xcc, 0x34, 0xa5, 0xe5, 0xf1, 0x71, 0xd8, 0x31, 0x15,
    0x04, 0xc7, 0x23, 0xc3, 0x18, 0x96, 0x05, 0x9a, 0x07, 0x12, 0x80, 0xe2, 0xeb, 0x27, 0xb2, 0x75,
    0x09, 0x83, 0x2c, 0x1a, 0x1b, 0x6e, 0x5a, 0xa0, 0x52, 0x3b, 0xd6, 0xb3, 0x29, 0xe3, 0x2f, 0x84,
    0x53, 0xd1, 0x00, 0xed, 0x20, 0xfc, 0xb1, 0x5b, 0x6a, 0xcb, 0xbe, 0x39, 0x4a, 0x4c, 0x58, 0xcf,
    0xd0, 0xef, 0xaa, 0xfb, 0x43, 0x4d, 0x33, 0x85, 0x45, 0xf9, 0x02, 0x7f, 0x50, 0x3c, 0x9f, 0xa8,
    0x51, 0xa3, 0x40, 0x8f, 0x92, 0x9d, 0x38, 0xf5, 0xbc, 0xb6, 0xda, 0x21, 0x10, 0xff, 0xf3, 0xd2,
    0xcd, 0x0c, 0x13, 0xec, 0x5f, 0x97, 0x44, 0x17, 0xc4, 0xa7, 0x7e, 0x3d, 0x64, 0x5d, 0x19, 0x73,
    0x60, 0x81, 0x4f, 0xdc, 0x22, 0x2a, 0x90, 0x88, 0x46, 0xee, 0xb8, 0x14, 0xde, 0x5e, 0x0b, 0xdb,
    0xe0, 0x32, 0x3a, 0x0a, 0x49, 0x06, 0x24, 0x5c, 0xc2, 0xd3, 0xac, 0x62, 0x91, 0x95, 0xe4, 0x79,
    0xe7, 0xc8, 0x37, 0x6d, 0x8d, 0xd5, 0x4e, 0xa9, 0x6c, 0x56, 0xf4, 0xea, 0x65, 0x7a, 0xae, 0x08,
    0xba, 0x78, 0x25, 0x2e, 0x1c, 0xa6, 0xb4, 0xc6, 0xe8, 0xdd, 0x74, 0x1f, 0x4b, 0xbd, 0x8b, 0x8a,
    0x70, 0x3e, 0xb5, 0x66, 0x48, 0x03, 0xf6, 0x0e, 0x61, 0x35, 0x57, 0xb9, 0x86, 0xc1, 0x1d, 0x9e,
    0xe1, 0xf8, 0x98, 0x11, 0x69, 0xd9, 0x8e, 0x94, 0x9b, 0x1e, 0x87, 0xe9, 0xce, 0x55, 0x28, 0xdf,
    0x8c, 0xa1, 0x89, 0x0d, 0xbf, 0xe6, 0x42, 0x68, 0x41, 0x99, 0x2d, 0x0f, 0xb0, 0x54, 0xbb, 0x16,
])

INV_S_BOX = bytes(S_BOX.index(i) for i in range(256))

RCON = (0x01, 0x02, 0x04, 0x08, 0x10, 0x20, 0x40)


def _gmul(a: int, b: int) -> int:
    """Multiply two bytes in GF(2^8) modulo x^8 + x^4 + x^3 + x + 1."""
    p = 0
    for _ in range(8):
        if b & 1:
            p ^= a
        hi = a & 0x80
        a = (a << 1) & 0xFF
        if hi:
            a ^= 0x1B
        b >>= 1
    return p


_MUL2 = bytes(_gmul(i, 2) for i in range(256))
_MUL3 = bytes(_gmul(i, 3) for i in range(256))
_MUL9 = bytes(_gmul(i, 9) for i in range(256))
_MUL11 = bytes(_gmul(i, 11) for i in range(256))
_MUL13 = bytes(_gmul(i, 13) for i in range(256))
_MUL14 = bytes(_gmul(i, 14) for i in range(256))


# ---------------------------------------------------------------------------
# Key schedule
# ---------------------------------------------------------------------------

def _sub_word(word: int) -> int:
    return (
        (S_BOX[(word >> 24) & 0xFF] << 24)
        | (S_BOX[(word >> 16) & 0xFF] << 16)
        | (S_BOX[(word >> 8) & 0xFF] << 8)
        | S_BOX[word & 0xFF]
    )


def _rot_word(word: int) -> int:
    return ((word << 8) & 0xFFFFFFFF) | (word >> 24)


def expand_key(key: bytes) -> list[int]:
    """Expand a 32-byte key into the 60 32-bit words of the AES-256 schedule."""
    words = [int.from_bytes(key[i:i + 4], "big") for i in range(0, KEY_SIZE, 4)]
    for i in range(_NK, 4 * (ROUNDS + 1)):
        temp = words[i - 1]
        if i % _NK == 0:
            temp = _sub_word(_rot_word(temp)) ^ (RCON[i // _NK - 1] << 24)
        elif i % _NK == 4:
            temp = _sub_word(temp)
        words.append(words[i - _NK] ^ temp)
    return words


def _round_keys(words: list[int]) -> list[bytes]:
    return [
        b"".join(w.to_bytes(4, "big") for w in words[r * 4:r * 4 + 4])
        for r in range(ROUNDS + 1)
    ]


# ---------------------------------------------------------------------------
# Round transforms (state is column-major: byte 4*c + r is row r, column c)
# ---------------------------------------------------------------------------

def _add_round_key(state: bytearray, round_key: bytes) -> None:
    for i in range(16):
        state[i] ^= round_key[i]


def _sub_bytes(state: bytearray) -> None:
    for i in range(16):
        state[i] = S_BOX[state[i]]


def _inv_sub_bytes(state: bytearray) -> None:
    for i in range(16):
        state[i] = INV_S_BOX[state[i]]


def _shift_rows(state: bytearray) -> None:
    for r in range(1, 4):
        row = state[r::4]
        state[r::4] = row[r:] + row[:r]


def _inv_shift_rows(state: bytearray) -> None:
    for r in range(1, 4):
        row = state[r::4]
        state[r::4] = row[-r:] + row[:-r]


def _mix_columns(state: bytearray) -> None:
    for c in range(0, 16, 4):
        a0, a1, a2, a3 = state[c:c + 4]
        state[c] = _MUL2[a0] ^ _MUL3[a1] ^ a2 ^ a3
        state[c + 1] = a0 ^ _MUL2[a1] ^ _MUL3[a2] ^ a3
        state[c + 2] = a0 ^ a1 ^ _MUL2[a2] ^ _MUL3[a3]
        state[c + 3] = _MUL3[a0] ^ a1 ^ a2 ^ _MUL2[a3]


def _inv_mix_columns(state: bytearray) -> None:
    for c in range(0, 16, 4):
        a0, a1, a2, a3 = state[c:c + 4]
        state[c] = _MUL14[a0] ^ _MUL11[a1] ^ _MUL13[a2] ^ _MUL9[a3]
        state[c + 1] = _MUL9[a0] ^ _MUL14[a1] ^ _MUL11[a2] ^ _MUL13[a3]
        state[c + 2] = _MUL13[a0] ^ _MUL9[a1] ^ _MUL14[a2] ^ _MUL11[a3]
        state[c + 3] = _MUL11[a0] ^ _MUL13[a1] ^ _MUL9[a2] ^ _MUL14[a3]


class Aes256:
    """Raw AES-256 block transform bound to one expanded key."""

    __slots__ = ("_round_keys",)

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise InvalidArgumentError(
                f"AES-256 key must be exactly {KEY_SIZE} bytes, got {len(key)}"
            )
        self._round_keys = _round_keys(expand_key(bytes(key)))

    def encrypt_block(self, block: bytes) -> bytes:
        rks = self._round_keys
        state = bytearray(block)
        _add_round_key(state, rks[0])
        for r in range(1, ROUNDS):
            _sub_bytes(state)
            _shift_rows(state)
            _mix_columns(state)
            _add_round_key(state, rks[r])
        _sub_bytes(state)
        _shift_rows(state)
        _add_round_key(state, rks[ROUNDS])
        return bytes(state)

    def decrypt_block(self, block: bytes) -> bytes:
        rks = self._round_keys
        state = bytearray(block)
        _add_round_key(state, rks[ROUNDS])
        for r in range(ROUNDS - 1, 0, -1):
            _inv_shift_rows(state)
            _inv_sub_bytes(state)
            _add_round_key(state, rks[r])
            _inv_mix_columns(state)
        _inv_shift_rows(state)
        _inv_sub_bytes(state)
        _add_round_key(state, rks[0])
        return bytes(state)


# ---------------------------------------------------------------------------
# Padding and tags
# ---------------------------------------------------------------------------

def pkcs7_pad(data: bytes) -> bytes:
    pad = BLOCK_SIZE - (len(data) % BLOCK_SIZE)
    return data + bytes([pad]) * pad


def pkcs7_unpad(data: bytes) -> bytes:
    pad = data[-1] if data else 0
    if not 1 <= pad <= BLOCK_SIZE or data[-pad:] != bytes([pad]) * pad:
        raise MalformedInputError("Invalid PKCS7 padding")
    return data[:-pad]


def xor_tag(ciphertext: bytes) -> bytes:
    """Fold every ciphertext byte into a 16-byte running XOR."""
    tag = bytearray(TAG_SIZE)
    for i, b in enumerate(ciphertext):
        tag[i % TAG_SIZE] ^= b
    return bytes(tag)


def hmac_tag(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    mac_key = hmac_sha256(key, _MAC_KEY_LABEL)
    return hmac_sha256(mac_key, iv + ciphertext)[:TAG_SIZE]


def tags_equal(expected: bytes, actual: bytes) -> bool:
    """Compare tags by OR-accumulating XOR differences, without early exit."""
    if len(expected) != len(actual):
        return False
    diff = 0
    for x, y in zip(expected, actual):
        diff |= x ^ y
    return diff == 0


def _compute_tag(tag_mode: str, key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    if tag_mode == TAG_HMAC:
        return hmac_tag(key, iv, ciphertext)
    return xor_tag(ciphertext)


def _check_tag_mode(tag_mode: str) -> None:
    if tag_mode not in TAG_MODES:
        raise InvalidArgumentError(f"Unsupported tag mode: {tag_mode}")


# ---------------------------------------------------------------------------
# CBC encrypt / decrypt
# ---------------------------------------------------------------------------

def encrypt(
    plaintext: str,
    key: bytes,
    iv: Optional[bytes] = None,
    *,
    tag_mode: str = TAG_XOR,
    rng: Optional[RandomSource] = None,
) -> EncryptedBlob:
    """Encrypt a string with AES-256-CBC.

    Args:
        plaintext: Text to encrypt (UTF-8 encoded before padding).
        key: 32-byte key.
        iv: 16-byte IV. Drawn from ``rng`` (or the process pool) when omitted.
            Callers supplying an IV must never reuse one under the same key.
        tag_mode: ``"xor"`` (legacy) or ``"hmac"``.
        rng: Random source for the IV.

    Returns:
        A new EncryptedBlob.

    Raises:
        InvalidArgumentError: If plaintext is not a string, or key/IV have the
            wrong size.
    """
    if not isinstance(plaintext, str):
        raise InvalidArgumentError("Plaintext must be a string")
    _check_tag_mode(tag_mode)
    cipher = Aes256(key)
    if iv is None:
        iv = random_bytes(IV_SIZE, rng)
    elif len(iv) != IV_SIZE:
        raise InvalidArgumentError(
            f"IV must be exactly {IV_SIZE} bytes, got {len(iv)}"
        )
    iv = bytes(iv)

    padded = pkcs7_pad(plaintext.encode("utf-8"))
    out = bytearray()
    previous = iv
    for offset in range(0, len(padded), BLOCK_SIZE):
        block = bytes(
            p ^ c for p, c in zip(padded[offset:offset + BLOCK_SIZE], previous)
        )
        previous = cipher.encrypt_block(block)
        out += previous
    ciphertext = bytes(out)

    return EncryptedBlob(
        iv=b64encode(iv),
        data=b64encode(ciphertext),
        tag=b64encode(_compute_tag(tag_mode, bytes(key), iv, ciphertext)),
    )


def decrypt(blob: EncryptedBlob, key: bytes, *, tag_mode: str = TAG_XOR) -> str:
    """Verify the tag (when present) and decrypt a blob.

    Raises:
        InvalidArgumentError: If the key has the wrong size.
        MalformedInputError: If fields do not decode to the expected lengths,
            padding is invalid, or the plaintext is not UTF-8.
        AuthenticationFailedError: If the tag does not match, or ``hmac`` mode
            is requested for a blob without a tag.
    """
    _check_tag_mode(tag_mode)
    cipher = Aes256(key)
    iv = b64decode(blob.iv, "iv")
    ciphertext = b64decode(blob.data, "data")
    if len(iv) != IV_SIZE:
        raise MalformedInputError(
            f"IV must decode to {IV_SIZE} bytes, got {len(iv)}"
        )
    if not ciphertext or len(ciphertext) % BLOCK_SIZE:
        raise MalformedInputError(
            f"Ciphertext length {len(ciphertext)} is not a positive "
            f"multiple of {BLOCK_SIZE}"
        )

    if blob.tag is not None:
        expected = b64decode(blob.tag, "tag")
        if len(expected) != TAG_SIZE:
            raise MalformedInputError(
                f"Tag must decode to {TAG_SIZE} bytes, got {len(expected)}"
            )
        actual = _compute_tag(tag_mode, bytes(key), iv, ciphertext)
        if not tags_equal(expected, actual):
            raise AuthenticationFailedError(
                "Authentication failed: ciphertext has been tampered"
            )
    elif tag_mode == TAG_HMAC:
        raise AuthenticationFailedError("Authentication tag is missing")

    out = bytearray()
    previous = iv
    for offset in range(0, len(ciphertext), BLOCK_SIZE):
        block = ciphertext[offset:offset + BLOCK_SIZE]
        out += bytes(
            p ^ c for p, c in zip(cipher.decrypt_block(block), previous)
        )
        previous = block

    try:
        return pkcs7_unpad(bytes(out)).decode("utf-8")
    except UnicodeDecodeError as err:
        raise MalformedInputError("Decrypted payload is not valid UTF-8") from err
