"""
Runtime configuration for yazpack.

Holds the packaging policies and filesystem defaults that flow through
pack, unpack and open. Calls that take no explicit config fall back to a
process-wide default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .policy import DEFAULT_ENCRYPTION, DEFAULT_EXCLUSION, EncryptionPolicy, ExclusionPolicy

# Patterns used by PackageFS.walk when the caller passes none
DEFAULT_WALK_PATTERNS: tuple[str, ...] = (
    "*.yao",
    "*.json",
    "*.jsonc",
    "*.yaml",
    "*.so",
    "*.dll",
    "*.js",
    "*.py",
    "*.ts",
    "*.wasm",
)

DEFAULT_CONTAINER_NAME = "application.yaz"

TMPDIR_ENV = "YAZPACK_TMPDIR"


@dataclass
class RuntimeConfig:
    """
    Runtime configuration for packaging and package filesystems.

    Attributes:
        exclusion: Paths never written into a container
        encryption: Extensions selectively encrypted when a cipher is given
        walk_patterns: Default name patterns for PackageFS.walk
        container_name: File name used by the temp-directory pack variants
        temp_dir: Parent for temporary roots (None = system default)
    """

    exclusion: ExclusionPolicy = DEFAULT_EXCLUSION
    encryption: EncryptionPolicy = DEFAULT_ENCRYPTION
    walk_patterns: tuple[str, ...] = DEFAULT_WALK_PATTERNS
    container_name: str = DEFAULT_CONTAINER_NAME
    temp_dir: str | None = field(default_factory=lambda: os.environ.get(TMPDIR_ENV) or None)

    def __post_init__(self):
        """Reject container names that would land outside the temp root."""
        if not self.container_name or "/" in self.container_name or "\\" in self.container_name:
            raise ValueError(f"Invalid container name: {self.container_name!r}")


def get_runtime_config(
    exclude: list[str] | None = None,
    encrypt_extensions: list[str] | None = None,
    walk_patterns: list[str] | None = None,
    temp_dir: str | None = None,
) -> RuntimeConfig:
    """
    Create a runtime configuration with sensible defaults.

    Args:
        exclude: Replace the default exclusion prefixes
        encrypt_extensions: Replace the default encrypted extension set
        walk_patterns: Replace the default walk patterns
        temp_dir: Parent directory for temporary roots

    Returns:
        Configured RuntimeConfig instance
    """
    config = RuntimeConfig()

    if exclude is not None:
        config.exclusion = ExclusionPolicy(tuple(exclude))
    if encrypt_extensions is not None:
        config.encryption = EncryptionPolicy(frozenset(encrypt_extensions))
    if walk_patterns is not None:
        config.walk_patterns = tuple(walk_patterns)
    if temp_dir:
        config.temp_dir = temp_dir

    return config


# Global config instance (can be set by CLI)
_global_config: RuntimeConfig | None = None


def set_global_config(config: RuntimeConfig) -> None:
    """Set the global runtime configuration."""
    global _global_config
    _global_config = config


def get_global_config() -> RuntimeConfig:
    """Get the global runtime configuration, creating default if needed."""
    global _global_config
    if _global_config is None:
        _global_config = RuntimeConfig()
    return _global_config
