#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

logging.basicConfig(stream=sys.stderr, level=logging.WARNING, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logging.getLogger("httpx").setLevel(logging.WARNING)

from journal_stack.api import (
    capture, delete_all, delete_discovery, get_discovery, list_discoveries, set_category,
)
from journal_stack.config import ALL_CATEGORIES, CATEGORIES, DEFAULT_CATEGORY, JournalConfig
from journal_stack.journal_view import SortOrder
from journal_stack.utils import millis_to_iso


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plant Discovery Journal CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline steps to stderr")
    sub = parser.add_subparsers(dest="cmd", required=True)

    capture_cmd = sub.add_parser("capture", help="Identify a photo and save it to the journal")
    capture_cmd.add_argument("path", help="Image file path")
    capture_cmd.add_argument("--owner", required=True, help="Owner id")
    capture_cmd.add_argument("--category", default=DEFAULT_CATEGORY, choices=[c.lower() for c in CATEGORIES] + list(CATEGORIES))
    capture_cmd.add_argument("--location", default="")
    capture_cmd.add_argument("--notes", default="")

    list_cmd = sub.add_parser("list", help="List an owner's discoveries")
    list_cmd.add_argument("--owner", required=True, help="Owner id")
    list_cmd.add_argument("--search", default="")
    list_cmd.add_argument("--category", default=ALL_CATEGORIES)
    list_cmd.add_argument("--sort", default=SortOrder.DATE_DESC.value, choices=[s.value for s in SortOrder])
    list_cmd.add_argument("--json", action="store_true")

    show_cmd = sub.add_parser("show", help="Show one discovery")
    show_cmd.add_argument("id", type=int)

    cat_cmd = sub.add_parser("set-category", help="Change a discovery's category")
    cat_cmd.add_argument("id", type=int)
    cat_cmd.add_argument("category")

    del_cmd = sub.add_parser("delete", help="Delete one discovery")
    del_cmd.add_argument("id", type=int)

    del_all_cmd = sub.add_parser("delete-all", help="Delete every discovery of an owner")
    del_all_cmd.add_argument("--owner", required=True, help="Owner id")

    return parser.parse_args(argv)


def snippet(text: str, limit: int = 70) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def render_discoveries(rows: list[dict[str, Any]]) -> None:
    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title="Discovery Journal")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Category", style="magenta")
    table.add_column("Captured")
    table.add_column("Fact")
    for row in rows:
        table.add_row(
            str(row["id"]),
            row["name"],
            row["category"],
            millis_to_iso(row["captured_at"])[:19].replace("T", " "),
            snippet(row["fact"]),
        )
    console.print(table)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)
    cfg = JournalConfig()

    if args.cmd == "capture":
        out = capture(args.path, args.owner, args.category, location=args.location, notes=args.notes, cfg=cfg)
    elif args.cmd == "list":
        rows = list_discoveries(args.owner, search=args.search, category=args.category, sort=args.sort, cfg=cfg)
        if not args.json:
            render_discoveries(rows)
            return 0
        out = rows
    elif args.cmd == "show":
        out = get_discovery(args.id, cfg)
        if out is None:
            print(json.dumps({"status": "not_found", "id": args.id}))
            return 1
    elif args.cmd == "set-category":
        try:
            out = set_category(args.id, args.category, cfg)
        except ValueError as exc:
            raise SystemExit(str(exc)) from exc
    elif args.cmd == "delete":
        out = delete_discovery(args.id, cfg)
    elif args.cmd == "delete-all":
        out = delete_all(args.owner, cfg)
    else:
        raise SystemExit(f"Unknown command: {args.cmd}")

    print(json.dumps(out, ensure_ascii=False, indent=2))
    if isinstance(out, dict) and out.get("status") in ("error", "not_found"):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
