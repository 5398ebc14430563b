"""
AES-CBC encryption for Broadlink command payloads.

The device uses AES-128 in CBC mode with a fixed IV. Before authentication the
well-known default key is used; afterwards the per-device session key.
"""

import logging

from Crypto.Cipher import AES

from .protocol import BLOCK_SIZE

logger = logging.getLogger(__name__)


def pad_to_block_size(data: bytes) -> bytes:
    """Pad data with zeros up to a multiple of the AES block size (16 bytes)."""
    return bytes(data) + bytes(-len(data) % BLOCK_SIZE)


def unpad(data: bytes) -> bytes:
    """
    Strip padding using the last byte as the padding length.

    Genuine payloads are zero padded, so the last byte is normally 0 and
    nothing is removed. A claimed length larger than the buffer is ignored.

    Args:
        data: Decrypted bytes

    Returns:
        Data with the claimed padding removed
    """
    if not data:
        return data
    claimed = data[-1]
    if claimed > len(data):
        logger.debug("Ignoring padding length %d for %d-byte plaintext", claimed, len(data))
        return data
    return data[:len(data) - claimed]


def encrypt(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    """
    Encrypt a payload using AES-128-CBC.

    Args:
        key: 16-byte AES key
        iv: 16-byte initialization vector
        plaintext: Raw payload (zero padded to the block size)

    Returns:
        Ciphertext, a multiple of 16 bytes long
    """
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    return cipher.encrypt(pad_to_block_size(plaintext))


def decrypt(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    """
    Decrypt an AES-128-CBC response body.

    Args:
        key: 16-byte AES key
        iv: 16-byte initialization vector
        ciphertext: Encrypted body, at least one block

    Returns:
        Decrypted bytes with the claimed padding removed

    Raises:
        ValueError: If the ciphertext is shorter than one block or not block aligned
    """
    if len(ciphertext) < BLOCK_SIZE:
        raise ValueError(f"Ciphertext too short: {len(ciphertext)} bytes")
    if len(ciphertext) % BLOCK_SIZE:
        raise ValueError(f"Ciphertext length {len(ciphertext)} is not a multiple of {BLOCK_SIZE}")
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    return unpad(cipher.decrypt(bytes(ciphertext)))
