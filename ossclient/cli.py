# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""ossclient CLI: multi-command entry point.

Subcommands:

* ``init``:   create a stub config file
* ``upload``: encode an image as JPEG and upload it
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ossclient.client import OSSClient, UploadErrorKind
from ossclient.config import (
    STUB_CONFIG,
    ClientConfig,
    ConfigError,
    get_config_path,
)
from ossclient.imaging import InvalidImageError, load_image
from ossclient.logging import configure_logging


logger = logging.getLogger(__name__)

_USAGE = """\
usage: ossclient <command> [args]

commands:
  init     Create a stub config file
  upload   Upload an image as JPEG

Run 'ossclient <command> --help' for command-specific help.\
"""

#: Exit code for upload and signing failures.
EXIT_FAILURE = 1

#: Exit code for invalid input and configuration errors.
EXIT_USAGE = 2


# ── init subcommand ─────────────────────────────────────────────────


def cmd_init(argv: list[str]) -> int:
    """Create a stub configuration file.

    Args:
        argv: ``[--config PATH] [--force]``.

    Returns:
        Exit code (always 0).
    """
    parser = argparse.ArgumentParser(
        prog="ossclient init", description="Create a stub config file."
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument(
        "--force", action="store_true", help="overwrite an existing file"
    )
    args = parser.parse_args(argv)

    config_path: Path = args.config or get_config_path()

    if config_path.exists() and not args.force:
        print(f"Config already exists: {config_path}")
        return 0

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(STUB_CONFIG)
    print(f"Created stub config: {config_path}")
    return 0


# ── upload subcommand ───────────────────────────────────────────────


def cmd_upload(argv: list[str]) -> int:
    """Upload an image file.

    Args:
        argv: ``IMAGE [--bucket B] [--name N] [--config PATH] [-v]``.

    Returns:
        Exit code: 0 on success, 1 on upload or signing failure, 2 on
        invalid input or configuration errors.
    """
    parser = argparse.ArgumentParser(
        prog="ossclient upload", description="Upload an image as JPEG."
    )
    parser.add_argument("image", type=Path, help="image file to upload")
    parser.add_argument("--bucket", help="bucket (defaults to config)")
    parser.add_argument(
        "--name", help="object name (defaults to the file name stem)"
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = ClientConfig.from_yaml(args.config)
    except ConfigError as e:
        print(f"ossclient: config error: {e}", file=sys.stderr)
        return EXIT_USAGE

    bucket = args.bucket or config.bucket
    if not bucket:
        print(
            "ossclient: no bucket given (use --bucket or set 'bucket' "
            "in the config)",
            file=sys.stderr,
        )
        return EXIT_USAGE

    try:
        image = load_image(args.image)
    except InvalidImageError as e:
        print(f"ossclient: {e}", file=sys.stderr)
        return EXIT_USAGE

    name = args.name or args.image.stem
    with OSSClient.from_config(config) as client:
        result = client.upload_image(image, name, bucket)

    if result.ok:
        print(result.url)
        return 0

    message = f"ossclient: {result.error.value if result.error else 'error'}"
    if result.status_code is not None:
        message += f" (HTTP {result.status_code})"
    if result.detail:
        message += f": {result.detail}"
    print(message, file=sys.stderr)
    if result.error is UploadErrorKind.INVALID_INPUT:
        return EXIT_USAGE
    return EXIT_FAILURE


# ── Dispatch ────────────────────────────────────────────────────────

_DISPATCH: dict[str, str] = {
    "init": "cmd_init",
    "upload": "cmd_upload",
}


def cli() -> None:
    """Entry point for ``ossclient``."""
    argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        print(_USAGE)
        sys.exit(0)

    if argv[0] not in _DISPATCH:
        print(f"ossclient: unknown command '{argv[0]}'", file=sys.stderr)
        print(_USAGE, file=sys.stderr)
        sys.exit(EXIT_USAGE)

    # Look up handler by name so tests can mock individual commands.
    import ossclient.cli as _self

    handler = getattr(_self, _DISPATCH[argv[0]])
    sys.exit(handler(argv[1:]))
