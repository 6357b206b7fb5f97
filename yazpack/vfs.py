"""
Package filesystem.

Exposes an opened container as a read-only filesystem rooted at a private
extraction directory. Files stay as stored in the container: eligible
files are decrypted in memory on every read, never on disk.

Usage:
    fs = open_package("application.yaz", cipher)
    fs.walk("models", lambda root, name, is_dir: print(name), ["*.json"])
    data = fs.read("models/user.json")
"""

from __future__ import annotations

import os
import posixpath
from fnmatch import fnmatchcase
from io import BytesIO
from pathlib import Path
from typing import Callable, Protocol, Sequence, runtime_checkable

from loguru import logger

from .cipher import Cipher
from .container import uncompress
from .container.codec import run_cipher
from .errors import PathEscapeError, ReadOnlyError, WatchNotSupportedError
from .runtime import RuntimeConfig, get_global_config

# A single pattern of this value turns name filtering off
NO_FILTER = "-"

WalkHandler = Callable[[str, str, bool], None]


# -----------------------------------------------------------------------------
# Filesystem protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class FileSystem(Protocol):
    """
    Protocol for application filesystems.

    Loaders read models, APIs and plugins through this interface without
    knowing whether the files come from a plain directory or a package.
    """

    def walk(self, root: str, handler: WalkHandler, patterns: Sequence[str] | None = None) -> None:
        ...

    def read(self, name: str) -> bytes:
        ...

    def write(self, name: str, content: bytes) -> None:
        ...

    def remove(self, name: str) -> None:
        ...

    def exists(self, name: str) -> bool:
        ...

    def watch(self, handler: Callable[[str, str], None], interrupt: object = None) -> None:
        ...


# -----------------------------------------------------------------------------
# Path helpers
# -----------------------------------------------------------------------------


def _to_posix(name: str) -> str:
    # Backslash is a legal file name character where it is not a separator
    if os.sep == "\\":
        return name.replace("\\", "/")
    return name


def is_hidden(relative_path: str) -> bool:
    """
    Check if a walk-relative path is hidden.

    The path uses forward slashes and has no leading slash. It is hidden
    when its first segment starts with a dot.
    """
    return relative_path.split("/", 1)[0].startswith(".")


def match_any(name: str, patterns: Sequence[str]) -> bool:
    """Case-sensitive glob match of a base name against any pattern."""
    return any(fnmatchcase(name, pattern) for pattern in patterns)


# -----------------------------------------------------------------------------
# Package filesystem
# -----------------------------------------------------------------------------


class PackageFS:
    """
    Read-only filesystem over an extracted container.

    State is fixed at construction: the extraction root and the cipher used
    for on-demand decryption. Reads are safe from several threads; nothing
    here mutates state.
    """

    def __init__(
        self,
        root: str | Path,
        cipher: Cipher | None = None,
        *,
        file: str | Path | None = None,
        config: RuntimeConfig | None = None,
    ) -> None:
        """
        Bind a filesystem to an extraction root.

        Args:
            root: Directory a container was extracted into
            cipher: Decrypts eligible files on read
            file: Container the root was extracted from (informational)
            config: Runtime configuration (default: global config)
        """
        self._root = os.path.realpath(root)
        if not os.path.isdir(self._root):
            raise NotADirectoryError(f"Not a directory: {self._root}")
        self._cipher = cipher
        self._file = str(file) if file is not None else None
        self._config = config or get_global_config()

    def __repr__(self) -> str:
        return f"PackageFS(root={self._root!r}, file={self._file!r})"

    @property
    def root(self) -> str:
        """Absolute extraction root."""
        return self._root

    @property
    def file(self) -> str | None:
        """Container file this filesystem was opened from."""
        return self._file

    @property
    def cipher(self) -> Cipher | None:
        return self._cipher

    def resolve(self, name: str) -> str:
        """
        Resolve a root-relative name to an absolute path.

        Leading slashes are ignored, so "/models" and "models" are the same
        name. The empty name resolves to the root itself.

        Raises:
            PathEscapeError: If the normalized path lies outside the root
        """
        relative = _to_posix(name).lstrip("/")
        path = os.path.abspath(os.path.normpath(os.path.join(self._root, relative)))
        if os.path.commonpath([self._root, path]) != self._root:
            raise PathEscapeError(name, self._root)
        return path

    def walk(
        self,
        root: str,
        handler: WalkHandler,
        patterns: Sequence[str] | None = None,
    ) -> None:
        """
        Visit every entry under root in pre-order.

        Directories are always visited. Files must match one of the
        patterns by base name; None selects the default patterns, while
        an empty list or ["-"] disables name filtering. Entries whose first
        segment below root starts with a dot are skipped, and hidden
        directories are not descended into.

        The handler gets (root, name, is_dir). For files, name is root
        joined with the file's path below root ("models/user.json"). For
        directories, name is "/" followed by the path below root ("/" for
        root itself). File names never start with a slash: walking from
        root "" yields "a.json", not "/a.json".

        Raises:
            Whatever the handler raises, or OSError from the traversal.
            Both are logged before propagating.
        """
        root_abs = self.resolve(root)
        if patterns is None:
            patterns = self._config.walk_patterns
        filtering = bool(patterns) and patterns[0] != NO_FILTER
        display_root = _to_posix(root)

        def onerror(err: OSError) -> None:
            logger.error(f"[PackageFS.walk] {err.filename} {err}")
            raise err

        def visit(relative: str, is_dir: bool) -> None:
            if is_dir:
                name = "/" + relative
            else:
                name = posixpath.normpath(posixpath.join(display_root or ".", relative))
            try:
                handler(root, name, is_dir)
            except Exception as e:
                logger.error(f"[PackageFS.walk] {name} {e}")
                raise

        if os.path.isfile(root_abs):
            if not filtering or match_any(os.path.basename(root_abs), patterns):
                visit("", False)
            return

        for dirpath, dirnames, filenames in os.walk(root_abs, onerror=onerror):
            relative_dir = Path(dirpath).relative_to(root_abs).as_posix()
            if relative_dir == ".":
                relative_dir = ""

            # Hidden entries only exist at the top level of the walk
            if relative_dir:
                dirnames.sort()
            else:
                dirnames[:] = sorted(d for d in dirnames if not is_hidden(d))

            visit(relative_dir, True)

            for filename in sorted(filenames):
                if filtering and not match_any(filename, patterns):
                    continue
                relative = f"{relative_dir}/{filename}" if relative_dir else filename
                if is_hidden(relative):
                    continue
                visit(relative, False)

    def read(self, name: str) -> bytes:
        """
        Read a file, decrypting it in memory when eligible.

        Raises:
            FileNotFoundError: If the file does not exist
            CipherError: If decryption fails
        """
        path = self.resolve(name)

        if self._cipher is not None and self._config.encryption.eligible_name(name):
            buf = BytesIO()
            with open(path, "rb") as reader:
                run_cipher(self._cipher.decrypt, reader, buf, operation="decrypt", name=name)
            return buf.getvalue()

        with open(path, "rb") as f:
            return f.read()

    def read_text(self, name: str, encoding: str = "utf-8") -> str:
        """Read a file as text."""
        return self.read(name).decode(encoding)

    def write(self, name: str, content: bytes) -> None:
        raise ReadOnlyError("write", name)

    def remove(self, name: str) -> None:
        raise ReadOnlyError("remove", name)

    def exists(self, name: str) -> bool:
        """
        Check if a name exists.

        Returns False only when the path does not exist; any other stat
        failure propagates.
        """
        path = self.resolve(name)
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        return True

    def watch(self, handler: Callable[[str, str], None], interrupt: object = None) -> None:
        raise WatchNotSupportedError()


def open_package(
    file: str | Path,
    cipher: Cipher | None = None,
    *,
    config: RuntimeConfig | None = None,
) -> PackageFS:
    """
    Open a container as a read-only filesystem.

    The container is uncompressed into a new private temporary directory;
    eligible files stay encrypted there and are decrypted on read. The
    directory is left behind when the filesystem is discarded.

    Args:
        file: Container file
        cipher: Cipher the container was built with
        config: Runtime configuration (default: global config)

    Returns:
        PackageFS bound to the extraction root
    """
    cfg = config or get_global_config()
    root = uncompress(file, config=cfg)
    logger.debug(f"Opened {file} at {root}")
    return PackageFS(root, cipher, file=file, config=cfg)
