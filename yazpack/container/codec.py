"""
Container codec.

A container is a gzip-compressed pax tar stream. Entries are written in
pre-order starting below the packaged root: a directory entry always comes
before anything inside it. Files whose extension is eligible for encryption
are stored as ciphertext when a cipher is supplied; everything else is
stored verbatim.

Reading is a single sequential pass over the stream. There is no index and
no random access.
"""

from __future__ import annotations

import os
import shutil
import stat
import tarfile
import tempfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterator

from loguru import logger

from yazpack.cipher import Cipher
from yazpack.errors import CipherError, DestinationExistsError, FormatError, UnsupportedEntryError
from yazpack.policy import ExclusionPolicy, normalize_path
from yazpack.runtime import RuntimeConfig, get_global_config

# Pax header carrying the plaintext length of an encrypted payload
RAWSIZE_HEADER = "YAZPACK.rawsize"


# -----------------------------------------------------------------------------
# Stats
# -----------------------------------------------------------------------------


@dataclass
class BuildStats:
    """Counters collected while building a container."""

    directories: int = 0
    files: int = 0
    encrypted: int = 0
    total_bytes: int = 0


@dataclass
class ExtractStats:
    """Counters collected while reading a container."""

    directories: int = 0
    files: int = 0
    decrypted: int = 0
    total_bytes: int = 0


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _raise(err: OSError) -> None:
    raise err


def run_cipher(
    func: Callable[[BinaryIO, BinaryIO], None],
    reader: BinaryIO,
    writer: BinaryIO,
    *,
    operation: str,
    name: str,
) -> None:
    """
    Invoke a cipher method, reporting any failure as CipherError.

    Container stream errors raised while the cipher reads an entry are
    left alone so they surface as format errors.
    """
    try:
        func(reader, writer)
    except (tarfile.TarError, EOFError, zlib.error):
        raise
    except Exception as e:
        raise CipherError(f"{operation} {name}: {e}") from e


def iter_tree(
    root: Path,
    exclusion: ExclusionPolicy,
    *,
    skip: Path | None = None,
) -> Iterator[tuple[str, Path, bool]]:
    """
    Walk a source tree in pre-order, pruning excluded subtrees.

    Yields (relative_path, absolute_path, is_dir) for every directory and
    regular file below root. Symbolic links and special files are skipped
    with a warning. Names are visited in sorted order.

    Args:
        root: Resolved source root
        exclusion: Prefixes to leave out
        skip: A single file to leave out (the container being written)
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        current = Path(dirpath)
        rel_dir = normalize_path(current.relative_to(root).as_posix())
        if rel_dir:
            yield rel_dir, current, True

        kept: list[str] = []
        for name in sorted(dirnames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            full = current / name
            if exclusion.excluded(rel):
                logger.debug(f"[exclude] {rel}/")
                continue
            if full.is_symlink():
                logger.warning(f"Skipping symbolic link {rel}")
                continue
            kept.append(name)
        # Filter directories in-place to prevent descent
        dirnames[:] = kept

        for name in sorted(filenames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            full = current / name
            if exclusion.excluded(rel):
                logger.debug(f"[exclude] {rel}")
                continue
            if skip is not None and full == skip:
                continue
            mode = full.lstat().st_mode
            if not stat.S_ISREG(mode):
                logger.warning(f"Skipping {rel}: not a regular file")
                continue
            yield rel, full, False


def _member_target(dest: Path, name: str) -> Path:
    """Map an entry name onto dest, rejecting names that escape it."""
    if name.startswith("/"):
        raise FormatError(f"absolute entry name {name!r}")
    target = os.path.normpath(os.path.join(dest, name))
    if os.path.commonpath([str(dest), target]) != str(dest):
        raise FormatError(f"entry {name!r} escapes extraction root")
    return Path(target)


# -----------------------------------------------------------------------------
# Build
# -----------------------------------------------------------------------------


def build_container(
    root: str | Path,
    target: str | Path,
    cipher: Cipher | None = None,
    *,
    config: RuntimeConfig | None = None,
    exclusive: bool = False,
) -> BuildStats:
    """
    Compress a directory tree into a container file.

    Args:
        root: Source directory
        target: Container file to create (overwritten if present)
        cipher: Encrypts eligible files when given
        config: Runtime configuration (default: global config)
        exclusive: Fail instead of overwriting an existing target

    Returns:
        BuildStats for the written container

    Raises:
        NotADirectoryError: If root is not a directory
        DestinationExistsError: If exclusive and target already exists
        OSError: On any read/write failure
        CipherError: If the cipher fails on any file
    """
    cfg = config or get_global_config()
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {root_path}")

    target_path = Path(target).resolve()
    stats = BuildStats()

    try:
        out = open(target_path, "xb" if exclusive else "wb")
    except FileExistsError:
        raise DestinationExistsError(str(target)) from None

    with out:
        with tarfile.open(fileobj=out, mode="w:gz", format=tarfile.PAX_FORMAT) as tar:
            for rel, full, is_dir in iter_tree(root_path, cfg.exclusion, skip=target_path):
                info = tar.gettarinfo(str(full), arcname=rel)

                if is_dir:
                    tar.addfile(info)
                    stats.directories += 1
                    logger.debug(f"[dir] {rel}/")
                    continue

                with open(full, "rb") as src:
                    if cipher is not None and cfg.encryption.eligible_name(rel):
                        with tempfile.TemporaryFile(dir=cfg.temp_dir) as sealed:
                            run_cipher(cipher.encrypt, src, sealed, operation="encrypt", name=rel)
                            info.pax_headers = {RAWSIZE_HEADER: str(info.size)}
                            stats.total_bytes += info.size
                            info.size = sealed.tell()
                            sealed.seek(0)
                            tar.addfile(info, sealed)
                        stats.encrypted += 1
                        logger.debug(f"[encrypted] {rel} ({info.pax_headers[RAWSIZE_HEADER]} bytes)")
                    else:
                        tar.addfile(info, src)
                        stats.total_bytes += info.size
                        logger.debug(f"[file] {rel} ({info.size} bytes)")
                stats.files += 1

    logger.info(
        f"Packed {stats.files} files, {stats.directories} directories "
        f"({stats.total_bytes:,} bytes, {stats.encrypted} encrypted) into {target_path}"
    )
    return stats


# -----------------------------------------------------------------------------
# Read
# -----------------------------------------------------------------------------


def read_container(
    file: str | Path,
    dest: str | Path,
    cipher: Cipher | None = None,
    *,
    config: RuntimeConfig | None = None,
    exclusive: bool = False,
) -> ExtractStats:
    """
    Extract a container into a destination directory.

    Eligible files are decrypted when a cipher is given; otherwise every
    payload is written as stored. Files already written stay in place when
    extraction fails.

    Args:
        file: Container file
        dest: Extraction root (created if missing)
        cipher: Decrypts eligible files when given
        config: Runtime configuration (default: global config)
        exclusive: Fail instead of extracting into an existing dest

    Returns:
        ExtractStats for the extracted tree

    Raises:
        DestinationExistsError: If exclusive and dest already exists
        FormatError: Corrupt/truncated stream or an unsafe entry name
        UnsupportedEntryError: Entry that is not a directory or regular file
        CipherError: If the cipher fails on any file
        OSError: On any read/write failure
    """
    cfg = config or get_global_config()
    dest_path = Path(dest).resolve()
    try:
        dest_path.mkdir(parents=True, exist_ok=not exclusive)
    except FileExistsError:
        raise DestinationExistsError(str(dest)) from None
    stats = ExtractStats()

    try:
        with tarfile.open(str(file), mode="r|gz") as tar:
            for member in tar:
                target = _member_target(dest_path, member.name)

                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    stats.directories += 1
                    logger.debug(f"[dir] {member.name}/")

                elif member.isreg():
                    source = tar.extractfile(member)
                    if source is None:
                        raise FormatError(f"no payload for {member.name}")
                    target.parent.mkdir(parents=True, exist_ok=True)

                    if cipher is not None and cfg.encryption.eligible_name(target.name):
                        with tempfile.TemporaryFile(dir=cfg.temp_dir) as plain:
                            run_cipher(cipher.decrypt, source, plain, operation="decrypt", name=member.name)
                            size = plain.tell()
                            expected = member.pax_headers.get(RAWSIZE_HEADER)
                            if expected is not None and int(expected) != size:
                                raise FormatError(
                                    f"{member.name}: decrypted {size} bytes, expected {expected}"
                                )
                            plain.seek(0)
                            with open(target, "wb") as out:
                                shutil.copyfileobj(plain, out)
                        stats.decrypted += 1
                        logger.debug(f"[decrypted] {member.name} ({size} bytes)")
                    else:
                        with open(target, "wb") as out:
                            shutil.copyfileobj(source, out)
                        size = member.size
                        logger.debug(f"[file] {member.name} ({size} bytes)")

                    stats.files += 1
                    stats.total_bytes += size

                else:
                    raise UnsupportedEntryError(member.name, member.type)

    except (tarfile.TarError, EOFError, zlib.error) as e:
        raise FormatError(f"{file}: {e}") from e

    logger.info(
        f"Extracted {stats.files} files, {stats.directories} directories "
        f"({stats.total_bytes:,} bytes, {stats.decrypted} decrypted) into {dest_path}"
    )
    return stats


# -----------------------------------------------------------------------------
# Inspection
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EntryInfo:
    """
    One container entry, as stored.

    Attributes:
        name: Root-relative path (forward slashes)
        is_dir: Directory marker
        size: Stored payload size in bytes
        raw_size: Plaintext size when the payload is encrypted, else size
        encrypted: Whether the payload was encrypted at build time
    """

    name: str
    is_dir: bool
    size: int
    raw_size: int
    encrypted: bool


def iter_entries(file: str | Path) -> Iterator[EntryInfo]:
    """
    Stream the entry list of a container without extracting it.

    Raises:
        FormatError: Corrupt/truncated stream
        UnsupportedEntryError: Entry that is not a directory or regular file
    """
    try:
        with tarfile.open(str(file), mode="r|gz") as tar:
            for member in tar:
                if not (member.isdir() or member.isreg()):
                    raise UnsupportedEntryError(member.name, member.type)
                raw = member.pax_headers.get(RAWSIZE_HEADER)
                yield EntryInfo(
                    name=member.name,
                    is_dir=member.isdir(),
                    size=member.size,
                    raw_size=int(raw) if raw is not None else member.size,
                    encrypted=raw is not None,
                )
    except (tarfile.TarError, EOFError, zlib.error) as e:
        raise FormatError(f"{file}: {e}") from e
