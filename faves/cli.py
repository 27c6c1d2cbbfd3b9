#!/usr/bin/env python3
"""
Command-line picker.

Runs one picker action per invocation against a catalog file, keeping the
tournament in a JSON state file between runs.

Usage:
    faves --catalog tracks.yaml show
    faves --catalog tracks.yaml pick track-3 track-7
    faves --catalog tracks.yaml pass
    faves --catalog tracks.yaml link
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .catalog import FileCatalogProvider
from .config import settings
from .picker import Picker, PickerError, PickerOptions
from .stores.json_file import JsonFileStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pick your favorites by elimination")
    parser.add_argument(
        "--catalog",
        type=str,
        required=True,
        help="Path to a YAML/JSON catalog file",
    )
    parser.add_argument(
        "--state-file",
        type=str,
        default=settings.state_file,
        help=f"JSON file holding picker state (default: {settings.state_file})",
    )
    parser.add_argument(
        "--storage-key",
        type=str,
        default=settings.storage_key,
        help=f"Key the state is stored under (default: {settings.storage_key})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=settings.log_level,
        help=f"Logging level (default: {settings.log_level})",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("show", help="Show the current batch and favorites")
    pick = commands.add_parser("pick", help="Keep the given items from the current batch")
    pick.add_argument("ids", nargs="*", help="Item ids to keep (none keeps the whole batch)")
    commands.add_parser("pass", help="Keep every item in the current batch")
    commands.add_parser("reset", help="Start over with the current settings")
    favorites = commands.add_parser("favorites", help="Overwrite the favorites list")
    favorites.add_argument("ids", nargs="*")
    restart = commands.add_parser(
        "reset-to-favorites", help="Start over with the given favorites already found"
    )
    restart.add_argument("ids", nargs="*")
    configure = commands.add_parser("settings", help="Replace settings (KEY=VALUE, JSON values)")
    configure.add_argument("pairs", nargs="*")
    commands.add_parser("link", help="Print a shareable favorites link")
    shared = commands.add_parser("shared", help="Decode a shared favorites token")
    shared.add_argument("token")
    return parser


def parse_settings(pairs: List[str]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        try:
            result[key] = json.loads(raw)
        except ValueError:
            result[key] = raw
    return result


def _describe(item) -> str:
    name = item.get("name")
    return f"{item['id']}  {name}" if name else item["id"]


def print_view(picker: Picker) -> None:
    evaluating = picker.get_evaluating()
    favorites = picker.get_favorites()
    if evaluating:
        print(f"[*] Current batch ({len(evaluating)}):")
        for item in evaluating:
            print(f"    {_describe(item)}")
    else:
        print("[*] Nothing left to evaluate")
    print(f"[*] Favorites ({len(favorites)}):")
    for rank, item in enumerate(favorites, start=1):
        print(f"    {rank}. {_describe(item)}")


def run(args: argparse.Namespace) -> int:
    catalog = FileCatalogProvider(args.catalog).catalog
    picker = Picker(
        PickerOptions(
            items=catalog.items,
            history_length=settings.history_length,
            favorites_query_param=settings.favorites_query_param,
            default_settings=catalog.default_settings,
            storage_key=args.storage_key,
            store=JsonFileStore(args.state_file),
            shortcode_length=catalog.shortcode_length,
            on_load_state=_report_changes,
        )
    )

    command = args.command
    logger.debug("Running %s against %s", command, args.catalog)
    if command == "pick":
        picker.pick(args.ids)
    elif command == "pass":
        picker.pass_batch()
    elif command == "reset":
        picker.reset()
    elif command == "favorites":
        picker.set_favorites(args.ids)
    elif command == "reset-to-favorites":
        picker.reset_to_favorites(args.ids)
    elif command == "settings":
        picker.set_settings(parse_settings(args.pairs))
    elif command == "link":
        print(picker.get_shortcode_link())
        return 0
    elif command == "shared":
        for item in picker.map_items(picker.parse_shortcode_string(args.token)):
            print(_describe(item))
        return 0

    print_view(picker)
    return 0


def _report_changes(missing: List[str], extra: List[str]) -> None:
    if missing:
        print(f"[*] {len(missing)} new item(s) added to the tournament")
    if extra:
        print(f"[*] {len(extra)} item(s) no longer in the catalog were dropped")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return run(args)
    except PickerError as exc:
        print(f"[!] {exc.code}: {exc.message}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
