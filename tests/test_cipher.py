"""
Tests for the AES-256 block cipher engine and EncryptedBlob.

Tests cover:
- FIPS-197 / SP 800-38A known answers for the raw block transform
- CBC output agreement with the cryptography package
- Round-trip for empty, multi-block and non-ASCII plaintext
- Legacy XOR tag and HMAC tag verification and tamper detection
- Malformed blob detection and argument validation
- Blob JSON serialization
"""
import base64

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from flixora_vault.crypto.aes import (
    TAG_HMAC,
    Aes256,
    decrypt,
    encrypt,
    expand_key,
    pkcs7_pad,
    pkcs7_unpad,
    tags_equal,
    xor_tag,
)
from flixora_vault.crypto.blob import EncryptedBlob
from flixora_vault.exceptions import (
    AuthenticationFailedError,
    InvalidArgumentError,
    MalformedInputError,
)


def _flip(b64: str, index: int) -> str:
    raw = bytearray(base64.b64decode(b64))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


def _reference_cbc(plaintext: str, key: bytes, iv: bytes) -> bytes:
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


# --- Test Block Transform ---

class TestAes256Block:
    """Tests for the raw AES-256 block transform."""

    def test_fips197_appendix_c3(self):
        key = bytes(range(32))
        block = bytes.fromhex("00112233445566778899aabbccddeeff")
        cipher = Aes256(key)
        encrypted = cipher.encrypt_block(block)
        assert encrypted.hex() == "8ea2b7ca516745bfeafc49904b496089"
        assert cipher.decrypt_block(encrypted) == block

    def test_sp800_38a_ecb_vector(self):
        key = bytes.fromhex(
            "603deb1015ca71be2b73aef0857d77811f352c073b6108d72d9810a30914dff4"
        )
        block = bytes.fromhex("6bc1bee22e409f96e93d7e117393172a")
        assert Aes256(key).encrypt_block(block).hex() == (
            "f3eed1bdb5d2a03c064b5a7e3db181f8"
        )

    def test_key_schedule_shape(self):
        """Test 60 words with the key copied into the first eight."""
        key = bytes(range(32))
        words = expand_key(key)
        assert len(words) == 60
        assert words[0] == 0x00010203
        assert words[7] == 0x1C1D1E1F
        assert words[59] == 0x6D68DE36

    def test_wrong_key_size(self):
        with pytest.raises(InvalidArgumentError):
            Aes256(b"short")


# --- Test CBC Encryption ---

class TestEncrypt:
    """Tests for encrypt()."""

    @pytest.mark.parametrize("plaintext", [
        "",
        "sk_test_123",
        "exactly 16 bytes",
        "x" * 100,
        "clé secrète 秘密",
    ])
    def test_round_trip(self, key, plaintext):
        assert decrypt(encrypt(plaintext, key), key) == plaintext

    @pytest.mark.parametrize("plaintext", ["a", "exactly 16 bytes", "y" * 47])
    def test_matches_standard_cbc(self, key, iv, plaintext):
        """Test the ciphertext is plain AES-256-CBC with PKCS7."""
        blob = encrypt(plaintext, key, iv)
        assert base64.b64decode(blob.data) == _reference_cbc(plaintext, key, iv)

    def test_blob_fields(self, key, iv):
        blob = encrypt("sk_test_123", key, iv)
        assert base64.b64decode(blob.iv) == iv
        assert len(base64.b64decode(blob.data)) == 16
        assert len(base64.b64decode(blob.tag)) == 16

    def test_fresh_iv_per_encryption(self, key):
        first = encrypt("same value", key)
        second = encrypt("same value", key)
        assert first.iv != second.iv
        assert first.data != second.data

    def test_fixed_iv_is_deterministic(self, key, iv):
        assert encrypt("value", key, iv) == encrypt("value", key, iv)

    def test_accepts_bytearray_key(self, key):
        blob = encrypt("value", bytearray(key))
        assert decrypt(blob, bytearray(key)) == "value"

    def test_blob_is_immutable(self, key):
        blob = encrypt("value", key)
        with pytest.raises(Exception):
            blob.iv = "AAAA"

    @pytest.mark.parametrize("bad_key", [b"", bytes(16), bytes(31), bytes(33)])
    def test_wrong_key_size(self, bad_key):
        with pytest.raises(InvalidArgumentError):
            encrypt("value", bad_key)

    def test_wrong_iv_size(self, key):
        with pytest.raises(InvalidArgumentError):
            encrypt("value", key, bytes(12))

    def test_non_string_plaintext(self, key):
        with pytest.raises(InvalidArgumentError):
            encrypt(b"bytes", key)

    def test_unknown_tag_mode(self, key):
        with pytest.raises(InvalidArgumentError):
            encrypt("value", key, tag_mode="gcm")


# --- Test Legacy Tag ---

class TestXorTag:
    """Tests for the running-XOR tag."""

    def test_tag_is_running_xor(self, key, iv):
        blob = encrypt("a value spanning two blocks!", key, iv)
        data = base64.b64decode(blob.data)
        expected = bytearray(16)
        for i, b in enumerate(data):
            expected[i % 16] ^= b
        assert base64.b64decode(blob.tag) == bytes(expected)
        assert xor_tag(data) == bytes(expected)

    def test_every_data_byte_flip_is_detected(self, key, iv):
        """Test flipping any single ciphertext byte fails authentication."""
        blob = encrypt("a value spanning two blocks!", key, iv)
        length = len(base64.b64decode(blob.data))
        for index in range(length):
            tampered = blob.model_copy(update={"data": _flip(blob.data, index)})
            with pytest.raises(AuthenticationFailedError):
                decrypt(tampered, key)

    def test_tag_flip_is_detected(self, key):
        blob = encrypt("value", key)
        tampered = blob.model_copy(update={"tag": _flip(blob.tag, 3)})
        with pytest.raises(AuthenticationFailedError):
            decrypt(tampered, key)

    def test_untagged_blob_decrypts(self, key):
        """Test a blob without a tag skips verification."""
        blob = encrypt("value", key).model_copy(update={"tag": None})
        assert decrypt(blob, key) == "value"


# --- Test HMAC Tag ---

class TestHmacTag:
    """Tests for the keyed tag mode."""

    def test_round_trip(self, key):
        blob = encrypt("sk_live_abc", key, tag_mode=TAG_HMAC)
        assert decrypt(blob, key, tag_mode=TAG_HMAC) == "sk_live_abc"

    def test_iv_tamper_is_detected(self, key):
        blob = encrypt("sk_live_abc", key, tag_mode=TAG_HMAC)
        tampered = blob.model_copy(update={"iv": _flip(blob.iv, 0)})
        with pytest.raises(AuthenticationFailedError):
            decrypt(tampered, key, tag_mode=TAG_HMAC)

    def test_wrong_key_is_detected(self, key):
        blob = encrypt("sk_live_abc", key, tag_mode=TAG_HMAC)
        with pytest.raises(AuthenticationFailedError):
            decrypt(blob, bytes(32), tag_mode=TAG_HMAC)

    def test_missing_tag_is_rejected(self, key):
        blob = encrypt("sk_live_abc", key, tag_mode=TAG_HMAC)
        with pytest.raises(AuthenticationFailedError):
            decrypt(blob.model_copy(update={"tag": None}), key, tag_mode=TAG_HMAC)

    def test_xor_blob_fails_hmac_verification(self, key):
        blob = encrypt("sk_live_abc", key)
        with pytest.raises(AuthenticationFailedError):
            decrypt(blob, key, tag_mode=TAG_HMAC)


# --- Test Malformed Input ---

class TestMalformedInput:
    """Tests for structurally invalid blobs."""

    def test_invalid_base64(self, key):
        blob = encrypt("value", key).model_copy(update={"data": "not*base64!"})
        with pytest.raises(MalformedInputError):
            decrypt(blob, key)

    def test_short_iv(self, key):
        blob = encrypt("value", key).model_copy(
            update={"iv": base64.b64encode(bytes(8)).decode()}
        )
        with pytest.raises(MalformedInputError):
            decrypt(blob, key)

    def test_unaligned_data(self, key):
        blob = EncryptedBlob(
            iv=base64.b64encode(bytes(16)).decode(),
            data=base64.b64encode(bytes(20)).decode(),
        )
        with pytest.raises(MalformedInputError):
            decrypt(blob, key)

    def test_empty_data(self, key):
        blob = EncryptedBlob(iv=base64.b64encode(bytes(16)).decode(), data="")
        with pytest.raises(MalformedInputError):
            decrypt(blob, key)

    def test_short_tag(self, key):
        blob = encrypt("value", key).model_copy(
            update={"tag": base64.b64encode(bytes(4)).decode()}
        )
        with pytest.raises(MalformedInputError):
            decrypt(blob, key)

    def test_is_value_error(self, key):
        blob = EncryptedBlob(iv="", data="")
        with pytest.raises(ValueError):
            decrypt(blob, key)


# --- Test Padding Helpers ---

class TestPadding:
    """Tests for PKCS7 helpers and tag comparison."""

    @pytest.mark.parametrize("length", [0, 1, 15, 16, 17])
    def test_pad_unpad(self, length):
        data = b"z" * length
        padded = pkcs7_pad(data)
        assert len(padded) % 16 == 0
        assert len(padded) > length
        assert pkcs7_unpad(padded) == data

    @pytest.mark.parametrize("padded", [
        b"a" * 15 + b"\x00",
        b"a" * 15 + b"\x11",
        b"a" * 13 + b"\x01\x03\x03",
    ])
    def test_invalid_padding(self, padded):
        with pytest.raises(MalformedInputError):
            pkcs7_unpad(padded)

    def test_tags_equal(self):
        assert tags_equal(b"\x01" * 16, b"\x01" * 16)
        assert not tags_equal(b"\x01" * 16, b"\x01" * 15 + b"\x00")
        assert not tags_equal(b"\x01" * 16, b"\x01" * 8)


# --- Test Blob Serialization ---

class TestEncryptedBlob:
    """Tests for blob JSON round-trips."""

    def test_json_round_trip(self, key):
        blob = encrypt("value", key)
        restored = EncryptedBlob.from_json(blob.to_json())
        assert restored == blob
        assert decrypt(restored, key) == "value"

    def test_untagged_dict_omits_tag(self):
        blob = EncryptedBlob(iv="aXY=", data="ZGF0YQ==")
        assert blob.to_dict() == {"iv": "aXY=", "data": "ZGF0YQ=="}

    def test_legacy_auth_tag_key(self, key):
        blob = encrypt("value", key)
        legacy = {"iv": blob.iv, "data": blob.data, "authTag": blob.tag}
        assert EncryptedBlob.from_dict(legacy) == blob

    @pytest.mark.parametrize("raw", [b"not json", b"[1, 2]", b'{"iv": "x"}'])
    def test_invalid_json(self, raw):
        with pytest.raises(MalformedInputError):
            EncryptedBlob.from_json(raw)

    def test_repr_hides_ciphertext(self, key):
        blob = encrypt("value", key)
        assert blob.data not in repr(blob)
