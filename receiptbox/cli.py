"""CLI entry point for receiptbox."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from .config import ReceiptsConfig, load_config
from .db import ReceiptDB
from .store import ReceiptStore


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="receiptbox",
        description="Move receipt PDFs into a store and extract them into a database",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the configuration file (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log pipeline progress"
    )

    sub = parser.add_subparsers(dest="command")

    # add
    add_parser = sub.add_parser("add", help="Move files into the receipt store")
    add_parser.add_argument("paths", nargs="*", help="Files to add")
    add_parser.add_argument(
        "--paste",
        action="store_true",
        help="Read pasted paths (one per line, quoted, escaped or file:// URLs) from stdin",
    )

    # process
    process_parser = sub.add_parser(
        "process", help="Extract stored receipts into the database"
    )
    process_parser.add_argument(
        "filenames",
        nargs="*",
        help="Stored filenames to process (default: every unprocessed PDF)",
    )
    process_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # list
    sub.add_parser("list", help="List processed receipts")

    # show
    show_parser = sub.add_parser("show", help="Show one receipt with its items")
    show_parser.add_argument("receipt_id", type=int)
    show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # files
    sub.add_parser("files", help="List files in the receipt store")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    load_dotenv()
    config = load_config(args.config)

    match args.command:
        case "add":
            _cmd_add(config, args)
        case "process":
            asyncio.run(_cmd_process(config, args))
        case "list":
            _cmd_list(config)
        case "show":
            _cmd_show(config, args)
        case "files":
            _cmd_files(config)


def _cmd_add(config: ReceiptsConfig, args) -> None:
    from .processor import import_files

    text = sys.stdin.read() if args.paste else "\n".join(args.paths)
    store = ReceiptStore(config.store.dir)
    try:
        results = import_files(store, text)
    except RuntimeError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    if not results:
        print("No valid file paths found.")
        sys.exit(1)

    failed = 0
    for r in results:
        if r.success:
            print(f"  ✓ {r.filename}")
        else:
            failed += 1
            print(f"  ✗ {r.source}: {r.error}", file=sys.stderr)
    print(f"Moved {len(results) - failed} file(s) to {store.location()}")
    if failed:
        sys.exit(1)


async def _cmd_process(config: ReceiptsConfig, args) -> None:
    from .extraction.strategy import create_strategy
    from .processor import ReceiptProcessor

    store = ReceiptStore(config.store.dir)
    try:
        strategy = create_strategy(config)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    with ReceiptDB.open(config.database.path) as db:
        processor = ReceiptProcessor(store, db, strategy)
        filenames = args.filenames or processor.unprocessed()
        if not filenames:
            print("No unprocessed receipts.")
            return

        if not args.json:
            print(f"Processing {len(filenames)} receipt(s)...")
        results = await processor.process_many(filenames)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
        return

    for r in results:
        mark = "✓" if r.success else "✗"
        receipt = f" (#{r.receipt_id})" if r.receipt_id is not None else ""
        print(f"  {mark} {r.filename}{receipt}: {r.message}")
        for issue in r.validation_issues:
            print(f"      - {issue}")


def _cmd_list(config: ReceiptsConfig) -> None:
    with ReceiptDB.open(config.database.path) as db:
        receipts = db.list_receipts()

    if not receipts:
        print("No receipts processed yet.")
        return
    print(f"Receipts: {len(receipts)}")
    for r in receipts:
        total = r["total_amount"] if r["total_amount"] is not None else 0.0
        print(
            f"  #{r['id']:<4} {r['receipt_date'] or '----------'}  "
            f"{r['merchant_name'] or '':<24} {total:>10.2f} {r['currency'] or ''}  "
            f"[{r['processing_status']}] {r['filename']}"
        )


def _cmd_show(config: ReceiptsConfig, args) -> None:
    with ReceiptDB.open(config.database.path) as db:
        receipt = db.get_receipt_with_items(args.receipt_id)

    if receipt is None:
        print(f"Receipt not found: {args.receipt_id}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(receipt, ensure_ascii=False, indent=2))
        return

    print(f"{receipt['merchant_name']}  {receipt['receipt_date']}")
    print(f"  File:   {receipt['filename']}")
    print(f"  Status: {receipt['processing_status']}")
    for item in receipt["items"]:
        print(
            f"  {item['quantity']:g} x {item['item_name']:<30} "
            f"{item['total_price']:>10.2f}"
        )
    print(f"  {'Total':<35} {receipt['total_amount']:>10.2f} {receipt['currency']}")


def _cmd_files(config: ReceiptsConfig) -> None:
    store = ReceiptStore(config.store.dir)
    docs = store.list_documents()
    if not docs:
        print(f"No files in {store.location()}")
        return
    print(f"Files in {store.location()}: {len(docs)}")
    for doc in docs:
        print(f"  {doc.filename}  ({doc.size} bytes)")
