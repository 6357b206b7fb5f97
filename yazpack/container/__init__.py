"""
Container build/read pipeline and package lifecycle.

Usage:
    from yazpack.container import pack_to, unpack

    pack_to("./app", "app.yaz", cipher)
    root = unpack("app.yaz", cipher)
"""

from .codec import (
    BuildStats,
    EntryInfo,
    ExtractStats,
    build_container,
    iter_entries,
    iter_tree,
    read_container,
)
from .lifecycle import (
    compress,
    compress_to,
    decrypt,
    decrypt_bytes,
    decrypt_file,
    encrypt,
    encrypt_bytes,
    encrypt_file,
    pack,
    pack_to,
    uncompress,
    uncompress_to,
    unpack,
    unpack_to,
)

__all__ = [
    # Codec
    "BuildStats",
    "ExtractStats",
    "EntryInfo",
    "build_container",
    "read_container",
    "iter_tree",
    "iter_entries",
    # Lifecycle
    "pack",
    "pack_to",
    "unpack",
    "unpack_to",
    "compress",
    "compress_to",
    "uncompress",
    "uncompress_to",
    # Cipher helpers
    "encrypt",
    "decrypt",
    "encrypt_bytes",
    "decrypt_bytes",
    "encrypt_file",
    "decrypt_file",
]
