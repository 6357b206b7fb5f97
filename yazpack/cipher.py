"""
Cipher capability.

The container pipeline never sees key material. It only calls a strategy
that turns one byte stream into another. Any object with matching
encrypt/decrypt methods satisfies the Cipher protocol.

AESGCMCipher is the strategy shipped with the package: chunked AES-256-GCM
over arbitrary streams, authenticated per chunk, with truncation detection.
"""

from __future__ import annotations

import os
import struct
from typing import BinaryIO, Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import CipherError


# -----------------------------------------------------------------------------
# Protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class Cipher(Protocol):
    """
    Protocol for stream encryption strategies.

    Implementations must be symmetric: decrypt(encrypt(x)) == x for every
    byte sequence x. Both methods raise on failure.
    """

    def encrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        """Read plaintext from reader, write ciphertext to writer."""
        ...

    def decrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        """Read ciphertext from reader, write plaintext to writer."""
        ...


# -----------------------------------------------------------------------------
# AES-256-GCM stream cipher
# -----------------------------------------------------------------------------

MAGIC = b"YAZ1"
KEY_LEN = 32
NONCE_PREFIX_LEN = 8
TAG_LEN = 16
COUNTER_MAX = 0xFFFFFFFF
DEFAULT_CHUNK_SIZE = 64 * 1024
# Upper bound on the plaintext of one chunk, for writers and readers alike
MAX_CHUNK_SIZE = 16 * 1024 * 1024

# Associated data distinguishing the last chunk from the others
AAD_CHUNK = b"yaz:chunk"
AAD_FINAL = b"yaz:final"

_LEN = struct.Struct(">I")


def generate_key() -> bytes:
    """Generate a random 256-bit key."""
    return AESGCM.generate_key(bit_length=KEY_LEN * 8)


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = reader.read(size - len(buf))
        if not chunk:
            break
        buf.extend(chunk)
    return bytes(buf)


class AESGCMCipher:
    """
    Chunked AES-256-GCM stream cipher.

    Stream layout:
        MAGIC (4) | nonce prefix (8) | chunk*
        chunk = length (4, big-endian) | ciphertext + tag

    Each chunk nonce is the stream's random prefix followed by a 4-byte
    counter. The last chunk is sealed with AAD_FINAL, so a stream cut at a
    chunk boundary fails to decrypt instead of yielding a short plaintext.
    Chunk lengths are framed, so any chunk_size reads any other's output.

    Usage:
        cipher = AESGCMCipher(generate_key())
        with open("a.json", "rb") as src, open("a.json.enc", "wb") as dst:
            cipher.encrypt(src, dst)
    """

    def __init__(self, key: bytes, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if len(key) != KEY_LEN:
            raise ValueError(f"AES-256 key must be {KEY_LEN} bytes, got {len(key)}")
        if not 0 < chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}")
        self._aead = AESGCM(key)
        self.chunk_size = chunk_size

    @classmethod
    def from_hex(cls, key_hex: str, **kwargs: int) -> "AESGCMCipher":
        """Build a cipher from a hex-encoded key."""
        try:
            key = bytes.fromhex(key_hex.strip())
        except ValueError as e:
            raise ValueError("key is not valid hex") from e
        return cls(key, **kwargs)

    def __repr__(self) -> str:
        return f"AESGCMCipher(chunk_size={self.chunk_size})"

    def encrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        prefix = os.urandom(NONCE_PREFIX_LEN)
        writer.write(MAGIC)
        writer.write(prefix)

        counter = 0
        chunk = _read_exact(reader, self.chunk_size)
        while True:
            # Look ahead one chunk to know whether this one is the last
            following = _read_exact(reader, self.chunk_size) if len(chunk) == self.chunk_size else b""
            aad = AAD_CHUNK if following else AAD_FINAL
            sealed = self._aead.encrypt(self._nonce(prefix, counter), chunk, aad)
            writer.write(_LEN.pack(len(sealed)))
            writer.write(sealed)
            if not following:
                return
            counter += 1
            chunk = following

    def decrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        header = _read_exact(reader, len(MAGIC) + NONCE_PREFIX_LEN)
        if len(header) != len(MAGIC) + NONCE_PREFIX_LEN or header[: len(MAGIC)] != MAGIC:
            raise CipherError("not an encrypted stream (bad header)")
        prefix = header[len(MAGIC) :]

        counter = 0
        raw_len = _read_exact(reader, _LEN.size)
        if len(raw_len) != _LEN.size:
            raise CipherError("encrypted stream is truncated")

        while True:
            (size,) = _LEN.unpack(raw_len)
            if size < TAG_LEN or size > MAX_CHUNK_SIZE + TAG_LEN:
                raise CipherError(f"invalid chunk length {size}")
            sealed = _read_exact(reader, size)
            if len(sealed) != size:
                raise CipherError("encrypted stream is truncated")

            raw_len = _read_exact(reader, _LEN.size)
            final = not raw_len
            if raw_len and len(raw_len) != _LEN.size:
                raise CipherError("encrypted stream is truncated")

            aad = AAD_FINAL if final else AAD_CHUNK
            try:
                plain = self._aead.decrypt(self._nonce(prefix, counter), sealed, aad)
            except InvalidTag as e:
                raise CipherError("authentication failed (wrong key or corrupted data)") from e
            writer.write(plain)

            if final:
                return
            counter += 1

    @staticmethod
    def _nonce(prefix: bytes, counter: int) -> bytes:
        if counter > COUNTER_MAX:
            raise CipherError("stream too long for a single nonce prefix")
        return prefix + _LEN.pack(counter)
