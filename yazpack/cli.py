"""
yazpack CLI.

Commands:
    pack        Pack a directory into an encrypted container
    unpack      Extract an encrypted container
    compress    Pack a directory without encryption
    uncompress  Extract a container without decrypting
    info        Inspect a container's entries
    ls          Walk an opened container
    cat         Print one file from a container
    keygen      Generate a hex-encoded key

Keys are hex-encoded 32-byte values given with --key, --key-file or the
YAZPACK_KEY environment variable.

Examples:
    yazpack keygen > app.key
    yazpack pack ./app -o application.yaz --key-file app.key
    yazpack ls application.yaz models -p "*.json" --key-file app.key
    yazpack cat application.yaz models/user.json --key-file app.key
"""

from __future__ import annotations

import argparse
import os
import sys

KEY_ENV = "YAZPACK_KEY"


def _configure_logging(verbose: bool) -> None:
    from loguru import logger

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING", format="{message}")


def _load_cipher(args: argparse.Namespace, *, required: bool = True):
    """Build a cipher from --key, --key-file or the environment."""
    from yazpack.cipher import AESGCMCipher

    key_hex = getattr(args, "key", None)
    key_file = getattr(args, "key_file", None)
    if not key_hex and key_file:
        with open(key_file, encoding="utf-8") as f:
            key_hex = f.read()
    if not key_hex:
        key_hex = os.environ.get(KEY_ENV)

    if not key_hex:
        if required:
            raise ValueError(f"No key given (use --key, --key-file or {KEY_ENV})")
        return None
    return AESGCMCipher.from_hex(key_hex)


def _config_from_args(args: argparse.Namespace):
    from yazpack.runtime import get_runtime_config, set_global_config

    config = get_runtime_config(
        exclude=getattr(args, "exclude", None),
        temp_dir=getattr(args, "temp_dir", None),
    )
    set_global_config(config)
    return config


def _prepare_output(output: str, yes: bool) -> bool:
    """Clear an existing output file, asking first unless --yes. Returns False to abort."""
    from pathlib import Path

    output_path = Path(output)
    if not output_path.exists():
        return True
    if output_path.is_dir():
        print(f"Error: '{output}' is a directory", file=sys.stderr)
        return False
    if not yes:
        response = input(f"'{output}' exists. Overwrite? [y/N] ").strip().lower()
        if response not in ("y", "yes"):
            print("Aborted.")
            return False
    output_path.unlink()
    return True


def cmd_pack(args: argparse.Namespace, *, encrypted: bool) -> int:
    """Handle pack and compress commands."""
    from yazpack.container import pack, pack_to

    try:
        config = _config_from_args(args)
        cipher = _load_cipher(args) if encrypted else None

        if args.output:
            if not _prepare_output(args.output, args.yes):
                return 1
            output_path = pack_to(args.root, args.output, cipher, config=config)
        else:
            prefix = "pack-" if encrypted else "compress-"
            output_path = pack(args.root, cipher, config=config, prefix=prefix)

        print(f"Created: {output_path}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_unpack(args: argparse.Namespace, *, encrypted: bool) -> int:
    """Handle unpack and uncompress commands."""
    from yazpack.container import unpack, unpack_to

    try:
        config = _config_from_args(args)
        cipher = _load_cipher(args) if encrypted else None

        if args.output:
            output_path = unpack_to(args.file, args.output, cipher, config=config)
        else:
            prefix = "unpack-" if encrypted else "uncompress-"
            output_path = unpack(args.file, cipher, config=config, prefix=prefix)

        print(f"Extracted: {output_path}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_info(args: argparse.Namespace) -> int:
    """Handle info command."""
    from pathlib import Path

    from yazpack.container import iter_entries

    container = Path(args.file)
    if not container.exists():
        print(f"Error: File not found: {container}", file=sys.stderr)
        return 1

    try:
        entries = list(iter_entries(container))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    files = [e for e in entries if not e.is_dir]
    encrypted = [e for e in files if e.encrypted]

    print(f"Container: {container}")
    print(f"Size: {container.stat().st_size:,} bytes")
    print()
    print("Stats:")
    print(f"  Directories: {len(entries) - len(files)}")
    print(f"  Files: {len(files)}")
    print(f"  Encrypted: {len(encrypted)}")
    print(f"  Content size: {sum(e.raw_size for e in files):,} bytes")

    if args.list:
        print()
        print("Entries:")
        for entry in entries:
            if entry.is_dir:
                print(f"  {entry.name}/")
            else:
                flag = " [encrypted]" if entry.encrypted else ""
                print(f"  {entry.name} ({entry.raw_size:,} bytes){flag}")

    return 0


def cmd_ls(args: argparse.Namespace) -> int:
    """Handle ls command."""
    import shutil

    from yazpack.vfs import NO_FILTER, open_package

    fs = None
    try:
        config = _config_from_args(args)
        fs = open_package(args.file, _load_cipher(args, required=False), config=config)

        patterns = None
        if args.all:
            patterns = [NO_FILTER]
        elif args.pattern:
            patterns = args.pattern

        def show(root: str, name: str, is_dir: bool) -> None:
            print(name.rstrip("/") + "/" if is_dir else name)

        fs.walk(args.root, show, patterns)
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if fs is not None:
            shutil.rmtree(fs.root, ignore_errors=True)


def cmd_cat(args: argparse.Namespace) -> int:
    """Handle cat command."""
    import shutil

    from yazpack.vfs import open_package

    if not os.path.isfile(args.file):
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    fs = None
    try:
        config = _config_from_args(args)
        fs = open_package(args.file, _load_cipher(args, required=False), config=config)
        data = fs.read(args.name)
    except FileNotFoundError:
        print(f"Error: {args.name} not found in {args.file}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if fs is not None:
            shutil.rmtree(fs.root, ignore_errors=True)

    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()
    return 0


def cmd_keygen(args: argparse.Namespace) -> int:
    """Handle keygen command."""
    from yazpack.cipher import generate_key

    print(generate_key().hex())
    return 0


def _add_key_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--key",
        default=None,
        help=f"Hex-encoded 32-byte key (default: ${KEY_ENV})",
    )
    parser.add_argument(
        "--key-file",
        default=None,
        help="File holding the hex-encoded key",
    )


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print progress information",
    )
    parser.add_argument(
        "--temp-dir",
        default=None,
        help="Parent directory for temporary files",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    from yazpack import __version__

    parser = argparse.ArgumentParser(
        prog="yazpack",
        description="Pack applications into single-file containers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command")

    # pack / compress
    for name, help_text in (
        ("pack", "Pack a directory into an encrypted container"),
        ("compress", "Pack a directory without encryption"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("root", help="Directory to pack")
        sub.add_argument(
            "-o",
            "--output",
            default=None,
            help="Output container path (default: new temp directory)",
        )
        sub.add_argument(
            "-y",
            "--yes",
            action="store_true",
            help="Overwrite output without asking",
        )
        sub.add_argument(
            "-x",
            "--exclude",
            action="append",
            default=None,
            help="Exclusion prefix (repeatable, replaces the defaults)",
        )
        _add_common_args(sub)
        if name == "pack":
            _add_key_args(sub)

    # unpack / uncompress
    for name, help_text in (
        ("unpack", "Extract an encrypted container"),
        ("uncompress", "Extract a container without decrypting"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("file", help="Container file")
        sub.add_argument(
            "-o",
            "--output",
            default=None,
            help="Directory to create (default: new temp directory)",
        )
        _add_common_args(sub)
        if name == "unpack":
            _add_key_args(sub)

    # info
    info_parser = subparsers.add_parser("info", help="Inspect a container")
    info_parser.add_argument("file", help="Container file")
    info_parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        help="List every entry",
    )
    info_parser.add_argument("-v", "--verbose", action="store_true", help=argparse.SUPPRESS)

    # ls
    ls_parser = subparsers.add_parser("ls", help="Walk an opened container")
    ls_parser.add_argument("file", help="Container file")
    ls_parser.add_argument("root", nargs="?", default="", help="Directory inside the container")
    ls_parser.add_argument(
        "-p",
        "--pattern",
        action="append",
        default=None,
        help="File name pattern (repeatable, default: application sources)",
    )
    ls_parser.add_argument(
        "-a",
        "--all",
        action="store_true",
        help="Do not filter file names",
    )
    _add_common_args(ls_parser)
    _add_key_args(ls_parser)

    # cat
    cat_parser = subparsers.add_parser("cat", help="Print one file from a container")
    cat_parser.add_argument("file", help="Container file")
    cat_parser.add_argument("name", help="Path inside the container")
    _add_common_args(cat_parser)
    _add_key_args(cat_parser)

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate a hex-encoded key")
    keygen_parser.add_argument("-v", "--verbose", action="store_true", help=argparse.SUPPRESS)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)

    if args.command == "pack":
        return cmd_pack(args, encrypted=True)
    elif args.command == "compress":
        return cmd_pack(args, encrypted=False)
    elif args.command == "unpack":
        return cmd_unpack(args, encrypted=True)
    elif args.command == "uncompress":
        return cmd_unpack(args, encrypted=False)
    elif args.command == "info":
        return cmd_info(args)
    elif args.command == "ls":
        return cmd_ls(args)
    elif args.command == "cat":
        return cmd_cat(args)
    else:
        return cmd_keygen(args)


if __name__ == "__main__":
    sys.exit(main())
