"""
Packaging policies.

Two pieces of immutable data drive what goes into a container and how:
- ExclusionPolicy: root-anchored path prefixes that never enter a container
- EncryptionPolicy: file extensions whose content is selectively encrypted

Both are plain frozen dataclasses so different builds can use different
policies side by side.
"""

from __future__ import annotations

from dataclasses import dataclass


# -----------------------------------------------------------------------------
# Exclusion
# -----------------------------------------------------------------------------

# Local state, vendored dependencies and VCS/CI metadata
DEFAULT_IGNORES: tuple[str, ...] = (
    "/data",
    "/db",
    "/logs",
    "/tmp",
    "/vendor",
    ".github",
    ".git",
    "/.gitignore",
    "/.gitmodules",
    "/.gitattributes",
    "/.gitkeep",
    "/.gitlab-ci.yml",
)


def normalize_path(path: str) -> str:
    """
    Normalize path to forward slashes, remove leading ./ and /

    Converts Windows backslashes and ensures consistent format.
    """
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.lstrip("/")
    if normalized == ".":
        return ""
    return normalized


@dataclass(frozen=True, slots=True)
class ExclusionPolicy:
    """
    Ordered set of root-anchored path prefixes.

    A prefix matches a whole path segment run: "/data" excludes "data" and
    "data/x.db" but not "database". The leading slash is optional.
    """

    prefixes: tuple[str, ...] = DEFAULT_IGNORES

    def excluded(self, relative_path: str) -> bool:
        """Check if a root-relative path is, or lives under, an excluded prefix."""
        path = normalize_path(relative_path)
        if not path:
            return False

        for prefix in self.prefixes:
            rule = normalize_path(prefix).rstrip("/")
            if not rule:
                continue
            if path == rule or path.startswith(rule + "/"):
                return True
        return False


# -----------------------------------------------------------------------------
# Encryption eligibility
# -----------------------------------------------------------------------------

# Human-readable source, markup and config types
PLAIN_EXTENSIONS: tuple[str, ...] = (
    "js",
    "yao",
    "jsonc",
    "json",
    "html",
    "htm",
    "css",
    "txt",
    "md",
    "go",
    "yml",
    "yaml",
    "xml",
    "conf",
    "ini",
    "toml",
    "sql",
    "tpl",
    "tmpl",
)

# Template wrappers around the plain types
TEMPLATE_WRAPPED: tuple[str, ...] = (
    "html",
    "js",
    "css",
    "txt",
    "yml",
    "yaml",
    "xml",
    "conf",
    "ini",
    "toml",
    "sql",
    "tpl",
    "tmpl",
)

ENCRYPT_EXTENSIONS: frozenset[str] = frozenset(
    {
        *PLAIN_EXTENSIONS,
        *(f"tmpl.{ext}" for ext in TEMPLATE_WRAPPED),
        *(f"tmpl.tmpl.{ext}" for ext in TEMPLATE_WRAPPED),
    }
)


def extension_of(name: str) -> str:
    """
    Return the suffix after the last dot of the base name, without the dot.

    Returns an empty string when the base name has no dot.
    """
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[-1]


@dataclass(frozen=True, slots=True)
class EncryptionPolicy:
    """
    Extension set deciding which files are selectively encrypted.

    Lookup is case-sensitive. The same set must be used to build and to read
    a container; it is never recorded in the container itself.
    """

    extensions: frozenset[str] = ENCRYPT_EXTENSIONS

    def eligible(self, extension: str) -> bool:
        """Check if an extension (no leading dot) is encrypted."""
        return extension in self.extensions

    def eligible_name(self, name: str) -> bool:
        """Check if a file name or path is encrypted, by its extension."""
        return self.eligible(extension_of(name))


DEFAULT_EXCLUSION = ExclusionPolicy()
DEFAULT_ENCRYPTION = EncryptionPolicy()
