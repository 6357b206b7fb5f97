"""
Package lifecycle API.

Pack/unpack variants built on the container codec:
- pack / unpack: with a cipher, into a fresh temporary location
- pack_to / unpack_to: with a cipher, into a path that must not exist yet
- compress* / uncompress*: the same without encryption
- encrypt* / decrypt*: raw cipher helpers over streams, bytes and files

Temporary locations belong to the caller once returned. When a temporary
build or extraction fails, its directory is removed before the error
propagates.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

from loguru import logger

from yazpack.cipher import Cipher
from yazpack.errors import DestinationExistsError
from yazpack.runtime import RuntimeConfig, get_global_config

from .codec import build_container, read_container, run_cipher


def _require_absent(output: str | Path) -> Path:
    path = Path(output)
    if os.path.lexists(path):
        raise DestinationExistsError(str(path))
    return path


def _make_temp_dir(prefix: str, cfg: RuntimeConfig) -> Path:
    return Path(tempfile.mkdtemp(prefix=prefix, dir=cfg.temp_dir))


def _discard(path: Path) -> None:
    logger.debug(f"Removing incomplete temporary directory {path}")
    shutil.rmtree(path, ignore_errors=True)


# -----------------------------------------------------------------------------
# Pack / unpack (with cipher)
# -----------------------------------------------------------------------------


def pack(
    root: str | Path,
    cipher: Cipher | None,
    *,
    config: RuntimeConfig | None = None,
    prefix: str = "pack-",
) -> Path:
    """
    Pack a directory into a container inside a new temporary directory.

    Args:
        root: Source directory
        cipher: Encrypts eligible files when given
        config: Runtime configuration (default: global config)
        prefix: Temporary directory name prefix

    Returns:
        Path to the container file (caller owns its directory)

    Example:
        path = pack("./app", AESGCMCipher(key))
    """
    cfg = config or get_global_config()
    temp_dir = _make_temp_dir(prefix, cfg)
    target = temp_dir / cfg.container_name
    try:
        build_container(root, target, cipher, config=cfg)
    except BaseException:
        _discard(temp_dir)
        raise
    return target


def pack_to(
    root: str | Path,
    output: str | Path,
    cipher: Cipher | None,
    *,
    config: RuntimeConfig | None = None,
) -> Path:
    """
    Pack a directory into a container at output.

    Raises:
        DestinationExistsError: If output already exists (nothing is written)
    """
    output_path = _require_absent(output)
    build_container(root, output_path, cipher, config=config, exclusive=True)
    return output_path


def unpack(
    file: str | Path,
    cipher: Cipher | None,
    *,
    config: RuntimeConfig | None = None,
    prefix: str = "unpack-",
) -> Path:
    """
    Extract a container into a new temporary directory.

    Eligible files are decrypted on the way out when a cipher is given.

    Returns:
        Path to the extraction root (caller owns it)
    """
    cfg = config or get_global_config()
    temp_dir = _make_temp_dir(prefix, cfg)
    try:
        read_container(file, temp_dir, cipher, config=cfg)
    except BaseException:
        _discard(temp_dir)
        raise
    return temp_dir


def unpack_to(
    file: str | Path,
    output: str | Path,
    cipher: Cipher | None,
    *,
    config: RuntimeConfig | None = None,
) -> Path:
    """
    Extract a container into output.

    On failure, whatever was already extracted stays in output; the caller
    decides whether to discard it.

    Raises:
        DestinationExistsError: If output already exists (nothing is written)
    """
    output_path = _require_absent(output)
    read_container(file, output_path, cipher, config=config, exclusive=True)
    return output_path


# -----------------------------------------------------------------------------
# Compress / uncompress (no cipher)
# -----------------------------------------------------------------------------


def compress(root: str | Path, *, config: RuntimeConfig | None = None) -> Path:
    """Pack a directory without encryption into a temporary container."""
    return pack(root, None, config=config, prefix="compress-")


def compress_to(root: str | Path, output: str | Path, *, config: RuntimeConfig | None = None) -> Path:
    """Pack a directory without encryption into output."""
    return pack_to(root, output, None, config=config)


def uncompress(file: str | Path, *, config: RuntimeConfig | None = None) -> Path:
    """
    Extract a container into a temporary directory without decrypting.

    Encrypted payloads stay encrypted on disk.
    """
    return unpack(file, None, config=config, prefix="uncompress-")


def uncompress_to(file: str | Path, output: str | Path, *, config: RuntimeConfig | None = None) -> Path:
    """Extract a container into output without decrypting."""
    return unpack_to(file, output, None, config=config)


# -----------------------------------------------------------------------------
# Raw cipher helpers
# -----------------------------------------------------------------------------


def encrypt(cipher: Cipher, reader: BinaryIO, writer: BinaryIO) -> None:
    """Encrypt a stream into another stream."""
    run_cipher(cipher.encrypt, reader, writer, operation="encrypt", name="<stream>")


def decrypt(cipher: Cipher, reader: BinaryIO, writer: BinaryIO) -> None:
    """Decrypt a stream into another stream."""
    run_cipher(cipher.decrypt, reader, writer, operation="decrypt", name="<stream>")


def encrypt_bytes(cipher: Cipher, data: bytes) -> bytes:
    """Encrypt a byte string."""
    writer = BytesIO()
    run_cipher(cipher.encrypt, BytesIO(data), writer, operation="encrypt", name="<bytes>")
    return writer.getvalue()


def decrypt_bytes(cipher: Cipher, data: bytes) -> bytes:
    """Decrypt a byte string."""
    writer = BytesIO()
    run_cipher(cipher.decrypt, BytesIO(data), writer, operation="decrypt", name="<bytes>")
    return writer.getvalue()


def encrypt_file(cipher: Cipher, file: str | Path, output: str | Path) -> None:
    """Encrypt file into output (created or truncated)."""
    with open(file, "rb") as reader, open(output, "wb") as writer:
        run_cipher(cipher.encrypt, reader, writer, operation="encrypt", name=str(file))


def decrypt_file(cipher: Cipher, file: str | Path, output: str | Path) -> None:
    """Decrypt file into output (created or truncated)."""
    with open(file, "rb") as reader, open(output, "wb") as writer:
        run_cipher(cipher.decrypt, reader, writer, operation="decrypt", name=str(file))
