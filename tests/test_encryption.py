"""Unit tests for AES-CBC payload encryption."""

import pytest

from rm_controller.encryption import (
    decrypt,
    encrypt,
    pad_to_block_size,
    unpad,
)
from rm_controller.protocol import DEFAULT_KEY

KEY = bytes(range(16))
IV = bytes(range(16, 32))


def test_pad_to_block_size():
    assert pad_to_block_size(b"") == b""
    assert pad_to_block_size(b"abc") == b"abc" + bytes(13)
    assert pad_to_block_size(bytes(16)) == bytes(16)
    assert len(pad_to_block_size(bytes(17))) == 32


def test_encrypt_pads_to_block_multiple():
    assert len(encrypt(KEY, IV, b"x" * 5)) == 16
    assert len(encrypt(KEY, IV, b"x" * 16)) == 16
    assert len(encrypt(KEY, IV, b"x" * 33)) == 48


@pytest.mark.parametrize("plaintext", [
    bytes(16),
    b"\x02\x00\x00\x00" + bytes(12),
    bytes(range(1, 20)) + bytes(13),
    b"\xaa" * 31 + b"\x00",
])
def test_round_trip_zero_terminated(plaintext):
    assert decrypt(KEY, IV, encrypt(KEY, IV, plaintext)) == plaintext


def test_round_trip_restores_zero_padding():
    plaintext = b"hello"
    assert decrypt(KEY, IV, encrypt(KEY, IV, plaintext)) == plaintext + bytes(11)


def test_last_byte_is_treated_as_padding_length():
    plaintext = bytes(13) + b"\x03\x03\x03"
    assert decrypt(KEY, IV, encrypt(KEY, IV, plaintext)) == bytes(13)


def test_padding_claim_larger_than_buffer_is_ignored():
    plaintext = bytes(15) + b"\xff"
    assert decrypt(KEY, IV, encrypt(KEY, IV, plaintext)) == plaintext


def test_unpad_empty():
    assert unpad(b"") == b""


def test_decrypt_rejects_short_ciphertext():
    with pytest.raises(ValueError):
        decrypt(KEY, IV, bytes(15))


def test_decrypt_rejects_unaligned_ciphertext():
    with pytest.raises(ValueError):
        decrypt(KEY, IV, bytes(20))


def test_different_keys_produce_different_ciphertext():
    assert encrypt(KEY, IV, bytes(16)) != encrypt(DEFAULT_KEY, IV, bytes(16))
