#!/usr/bin/env python3
"""
mediadeck.py - command line front end.

Usage:
    mediadeck --scan ~/Pictures
        List every media file under the folder.

    mediadeck --tree ~/Pictures
        Print the folder tree with image/video counts.

    mediadeck --rotate photo.jpg 90
    mediadeck --flip photo.jpg horizontal
        Rewrite an image in place.

    mediadeck --thumbnail photo.jpg --size 200 --out thumb.jpg
        Render a cover-fit JPEG thumbnail.

    mediadeck --settings
    mediadeck --set sortBy date
    mediadeck --reset-settings
        Inspect or change stored preferences.
"""

from __future__ import annotations

import argparse
import base64
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from browser import MediaBrowser
from config import MediadeckConfig, ensure_user_config_exists, load_config
from fileops import OpResult
from foldertree import FolderNode

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_logging(cfg: MediadeckConfig) -> None:
    log_path = Path(cfg.logging.log_file)

    level = getattr(logging, cfg.logging.level, logging.INFO)
    fmt = "%(asctime)s %(levelname)-8s %(name)s - %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    except OSError as exc:
        print(f"Warning: cannot open log file {log_path}: {exc}", file=sys.stderr)

    logging.basicConfig(level=level, format=fmt, datefmt=datefmt, handlers=handlers)


logger = logging.getLogger("mediadeck")

console = Console()

# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _node_label(node: FolderNode) -> str:
    return (
        f"[bold]{escape(node.name)}[/bold] "
        f"[cyan]{node.total_image_count} images[/cyan], "
        f"[magenta]{node.total_video_count} videos[/magenta]"
    )


def render_tree(node: FolderNode, branch: Tree | None = None) -> Tree:
    branch = branch if branch is not None else Tree(_node_label(node))
    for child in node.children:
        render_tree(child, branch.add(_node_label(child)))
    return branch


def report(result: OpResult) -> int:
    """Print an OpResult and return the exit code for it."""
    if result.success:
        console.print(f"[green]OK[/green] {escape(result.message or result.path or '')}")
        return 0
    console.print(f"[bold red]FAILED[/bold red] {escape(result.error or '')}")
    return 1


def report_batch(results: list[OpResult]) -> int:
    table = Table("File", "Result")
    for r in results:
        table.add_row(
            escape(r.path or ""),
            "[green]ok[/green]" if r.success else f"[red]{escape(r.error or '')}[/red]",
        )
    console.print(table)
    return 0 if all(r.success for r in results) else 1


def _parse_value(raw: str) -> Any:
    """Interpret --set values as JSON when possible, otherwise as a string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediadeck",
        description="Browse media folders and perform simple file operations.",
    )

    parser.add_argument("--scan", metavar="DIR", help="List media files under DIR.")
    parser.add_argument("--sort", action="store_true", help="Sort --scan output by path.")
    parser.add_argument("--tree", metavar="DIR", help="Print the folder tree of DIR.")

    parser.add_argument("--rename", nargs=2, metavar=("OLD", "NEW"), help="Rename a file.")
    parser.add_argument("--delete", nargs="+", metavar="PATH", help="Delete one or more files.")
    parser.add_argument("--move", nargs=2, metavar=("SRC", "DST"), help="Move a file.")
    parser.add_argument(
        "--move-to",
        nargs="+",
        metavar="PATH",
        help="Move files into the directory given last (batch move).",
    )
    parser.add_argument("--rotate", nargs=2, metavar=("PATH", "ANGLE"), help="Rotate clockwise.")
    parser.add_argument(
        "--flip",
        nargs=2,
        metavar=("PATH", "DIRECTION"),
        help="Flip an image: horizontal or vertical.",
    )

    parser.add_argument("--thumbnail", metavar="PATH", help="Render a thumbnail.")
    parser.add_argument("--size", type=int, default=None, metavar="N", help="Thumbnail edge in px.")
    parser.add_argument("--out", metavar="FILE", help="Write the thumbnail JPEG here.")
    parser.add_argument("--properties", metavar="PATH", help="Show file properties.")

    parser.add_argument("--settings", action="store_true", help="Print stored settings.")
    parser.add_argument("--set", nargs=2, metavar=("KEY", "VALUE"), help="Change a setting.")
    parser.add_argument(
        "--reset-settings",
        action="store_true",
        dest="reset_settings",
        help="Restore default settings.",
    )

    parser.add_argument("--config", metavar="FILE", help="Path to an additional config file.")

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def run(args: argparse.Namespace, browser: MediaBrowser) -> int | None:
    """Dispatch one command.  Returns None when no command was given."""
    if args.scan:
        result = browser.scan_files(args.scan)
        if not result.success:
            return report(result)
        paths = sorted(result.data) if args.sort else result.data
        for path in paths:
            print(path)
        logger.info("%d media files", len(paths))
        return 0

    if args.tree:
        result = browser.get_folder_tree(args.tree)
        console.print(render_tree(result.data))
        return 0

    if args.rename:
        return report(browser.rename_file(*args.rename))

    if args.delete:
        if len(args.delete) == 1:
            return report(browser.delete_file(args.delete[0]))
        return report_batch(browser.batch_delete(args.delete))

    if args.move:
        return report(browser.move_file(*args.move))

    if args.move_to:
        if len(args.move_to) < 2:
            return report(OpResult.fail("--move-to needs at least one file and a directory"))
        *files, target_dir = args.move_to
        return report_batch(browser.batch_move(files, target_dir))

    if args.rotate:
        path, angle = args.rotate
        try:
            degrees = int(angle)
        except ValueError:
            return report(OpResult.fail(f"Angle must be an integer, got {angle!r}"))
        return report(browser.rotate_image(path, degrees))

    if args.flip:
        return report(browser.flip_image(*args.flip))

    if args.thumbnail:
        result = browser.generate_thumbnail(args.thumbnail, args.size)
        if result.success and args.out:
            _, _, payload = result.data.partition(",")
            try:
                Path(args.out).write_bytes(base64.b64decode(payload))
            except OSError as exc:
                logger.error("Cannot write thumbnail to %s: %s", args.out, exc)
                return report(OpResult.fail(f"Cannot write {args.out}: {exc}", path=args.out))
            result.message = f"Thumbnail written to {args.out}"
        elif result.success:
            print(result.data)
            return 0
        return report(result)

    if args.properties:
        result = browser.get_properties(args.properties)
        if not result.success:
            return report(result)
        table = Table("Property", "Value")
        for key, value in result.data.items():
            table.add_row(key, str(value))
        console.print(table)
        return 0

    if args.settings:
        print(json.dumps(browser.get_settings().data, indent=2, sort_keys=True))
        return 0

    if args.set:
        key, raw = args.set
        return report(browser.set_setting(key, _parse_value(raw)))

    if args.reset_settings:
        return report(browser.reset_settings())

    return None


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # ── Config + logging ─────────────────────────────────────────────────
    ensure_user_config_exists()
    try:
        cfg = load_config(Path(args.config) if args.config else None)
    except ValueError as exc:
        parser.error(str(exc))
    setup_logging(cfg)

    with MediaBrowser(cfg) as browser:
        code = run(args, browser)

    if code is None:
        parser.print_help()
        return
    sys.exit(code)


if __name__ == "__main__":
    main()
