"""Command-line entrypoint for keyed_selectors."""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Sequence
from typing import Any

from keyed_selectors.cache import KeyedInstanceCache
from keyed_selectors.config import resolve_log_level
from keyed_selectors.memo import ComposedSelector, create_selector, field_selector


def _parse_state(value: str) -> dict[str, Any]:
    """Parse a JSON object used as selector state."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"invalid state JSON: {value}") from exc
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("state must be a JSON object")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    """Create and return the top-level CLI parser."""
    parser = argparse.ArgumentParser(
        prog="keyed_selectors",
        description="Keyed selector cache command-line interface.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    parser.add_argument("--log-level", default=None)

    subparsers = parser.add_subparsers(dest="command")
    demo = subparsers.add_parser(
        "demo",
        help="Resolve one keyed selector per key against a JSON state and report reuse.",
    )
    demo.add_argument("--state", type=_parse_state, required=True)
    demo.add_argument("--field", required=True)
    demo.add_argument("--keys", nargs="+", required=True)

    return parser


def build_demo_family(field: str) -> KeyedInstanceCache[str, ComposedSelector[str]]:
    """Build a selector family producing ``"<state[field]>-<key>"`` per key."""

    def make_selector(key: str) -> ComposedSelector[str]:
        return create_selector(field_selector(field), projector=lambda value: f"{value}-{key}")

    return KeyedInstanceCache(make_selector, name=f"demo:{field}")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        level = resolve_log_level(args.log_level)
    except ValueError as exc:
        parser.error(str(exc))
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "demo":
        family = build_demo_family(args.field)
        for key in args.keys:
            selector, cache_hit = family.lookup(key)
            result = selector(args.state)
            print(
                f"key={key} "
                f"result={result} "
                f"cache_hit={cache_hit} "
                f"compute_count={selector.compute_count}"
            )
        print(f"demo complete builds={family.build_count}")
        return 0

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
