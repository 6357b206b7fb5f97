"""Pytest fixtures and test utilities for the yazpack test suite."""

import tarfile
from pathlib import Path
from typing import BinaryIO, Dict

import pytest
from loguru import logger

from yazpack import runtime
from yazpack.cipher import AESGCMCipher
from yazpack.runtime import RuntimeConfig


# ============================================================================
# SAMPLE APPLICATION
# ============================================================================

# Files that end up in a container (root-relative path -> content)
APP_FILES: Dict[str, bytes] = {
    "app.yao": b'{"name": "demo", "version": "1.0.0"}',
    "models/user.mod.yao": b'{"name": "user", "table": {"name": "users"}}',
    "models/user.json": b'{"columns": [{"name": "id", "type": "ID"}]}',
    "scripts/main.js": b"function Hello() { return 'hello' }\n",
    "templates/index.tmpl.html": b"<html><body>{{ .Title }}</body></html>",
    "plugins/user.so": bytes(range(256)) * 4,
    "public/logo.png": b"\x89PNG\r\n\x1a\n" + b"\x00" * 64,
    "database/schema.sql": b"CREATE TABLE users (id INTEGER PRIMARY KEY);",
    "README": b"no extension here",
    ".env": b"SECRET=1",
}

# Files that must never end up in a container
EXCLUDED_FILES: Dict[str, bytes] = {
    ".git/config": b"[core]\n",
    ".github/workflows/ci.yml": b"on: push\n",
    ".gitignore": b"/data\n",
    "data/app.db": b"sqlite",
    "logs/app.log": b"started\n",
    "tmp/cache.bin": b"\x00\x01",
    "vendor/lib/lib.go": b"package lib\n",
}


def write_tree(root: Path, files: Dict[str, bytes]) -> Path:
    """Write a {relative path: bytes} mapping under root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


def read_tree(root: Path) -> Dict[str, bytes]:
    """Read every regular file under root into a {relative path: bytes} mapping."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def container_payloads(container: Path) -> Dict[str, bytes]:
    """Read stored payloads straight out of a container, bypassing yazpack."""
    payloads = {}
    with tarfile.open(container, "r:gz") as tar:
        for member in tar.getmembers():
            if member.isreg():
                payloads[member.name] = tar.extractfile(member).read()
    return payloads


def container_names(container: Path) -> list:
    """Entry names of a container in stored order."""
    with tarfile.open(container, "r:gz") as tar:
        return [member.name for member in tar.getmembers()]


class XorCipher:
    """Length-preserving toy cipher used to exercise the Cipher protocol."""

    def __init__(self, key: int) -> None:
        self.key = key

    def encrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        writer.write(bytes(b ^ self.key for b in reader.read()))

    def decrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        writer.write(bytes(b ^ self.key for b in reader.read()))


class FailingCipher:
    """Cipher that always fails."""

    def encrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        raise RuntimeError("encrypt boom")

    def decrypt(self, reader: BinaryIO, writer: BinaryIO) -> None:
        raise RuntimeError("decrypt boom")


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def reset_global_config(monkeypatch):
    """Keep tests from leaking a global runtime config into each other."""
    monkeypatch.setattr(runtime, "_global_config", None)


@pytest.fixture
def app_dir(tmp_path):
    """Sample application tree including files the exclusion policy drops."""
    root = tmp_path / "app"
    write_tree(root, APP_FILES)
    write_tree(root, EXCLUDED_FILES)
    return root


@pytest.fixture
def temp_root(tmp_path):
    """Private parent directory for temporary pack/unpack roots."""
    path = tmp_path / "tmp-roots"
    path.mkdir()
    return path


@pytest.fixture
def config(temp_root):
    """Runtime config keeping every temporary root under tmp_path."""
    return RuntimeConfig(temp_dir=str(temp_root))


@pytest.fixture
def key():
    return bytes(range(32))


@pytest.fixture
def cipher(key):
    """AES-GCM cipher with a small chunk size so files span several chunks."""
    return AESGCMCipher(key, chunk_size=64)


@pytest.fixture
def other_cipher():
    """A valid cipher with a different key."""
    return AESGCMCipher(bytes(range(1, 33)), chunk_size=64)


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG")
    yield messages
    logger.remove(handler_id)
