"""
yazpack: single-file application packages.

Packs an application directory into one gzip-compressed container,
selectively encrypting human-readable files, and opens containers back as
a read-only filesystem.

Usage:
    from yazpack import AESGCMCipher, generate_key, open_package, pack_to

    cipher = AESGCMCipher(generate_key())
    pack_to("./app", "application.yaz", cipher)

    fs = open_package("application.yaz", cipher)
    fs.read("models/user.json")
"""

__version__ = "0.1.0"

from .cipher import AESGCMCipher, Cipher, generate_key
from .container import (
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
from .errors import (
    CapabilityError,
    CipherError,
    DestinationExistsError,
    FormatError,
    PathEscapeError,
    ReadOnlyError,
    UnsupportedEntryError,
    WatchNotSupportedError,
    YazError,
)
from .policy import EncryptionPolicy, ExclusionPolicy
from .runtime import RuntimeConfig, get_global_config, get_runtime_config, set_global_config
from .vfs import FileSystem, PackageFS, open_package

__all__ = [
    "__version__",
    # Cipher
    "Cipher",
    "AESGCMCipher",
    "generate_key",
    # Lifecycle
    "pack",
    "pack_to",
    "unpack",
    "unpack_to",
    "compress",
    "compress_to",
    "uncompress",
    "uncompress_to",
    "encrypt",
    "decrypt",
    "encrypt_bytes",
    "decrypt_bytes",
    "encrypt_file",
    "decrypt_file",
    # Filesystem
    "FileSystem",
    "PackageFS",
    "open_package",
    # Policies / config
    "ExclusionPolicy",
    "EncryptionPolicy",
    "RuntimeConfig",
    "get_runtime_config",
    "get_global_config",
    "set_global_config",
    # Exceptions
    "YazError",
    "DestinationExistsError",
    "PathEscapeError",
    "FormatError",
    "UnsupportedEntryError",
    "CipherError",
    "CapabilityError",
    "ReadOnlyError",
    "WatchNotSupportedError",
]
