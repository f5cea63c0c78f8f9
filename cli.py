#!/usr/bin/env python3
"""
Command-line access to bundle resolution, inventory and pricing.

Usage:
  bundle-bridge resolve <bundle_id>
  bundle-bridge inventory <bundle_id> --select <product_id>:<variant_id>:<qty> ...
  bundle-bridge price <bundle_id> [--skip-cache]

Configuration is read from BUNDLE_* environment variables (a .env file is
loaded if present).

Example:
  BUNDLE_STORE_DOMAIN=demo.myshopify.com BUNDLE_STOREFRONT_TOKEN=... \\
    bundle-bridge price gid://shopify/Product/123
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

from schemas.bundle_schemas import BundleSelection
from services.bundle_service import BundleService
from services.errors import BundleError, get_user_message
from settings import load_config_from_env

logger = logging.getLogger(__name__)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "severity": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Include traceback if present
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(level: Optional[str] = None) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())

    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_selection(raw: str) -> BundleSelection:
    """``product_id:variant_id:qty``; ids may themselves contain colons (GIDs)."""
    head, sep, qty = raw.rpartition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"Expected product:variant:qty, got {raw!r}")
    # GIDs look like gid://shopify/Product/1, so split on the ':gid:' boundary when present
    if ":gid://" in head:
        product_id, _, variant_id = head.partition(":gid://")
        variant_id = "gid://" + variant_id
    else:
        product_id, _, variant_id = head.rpartition(":")
    try:
        quantity = int(qty)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Quantity must be an integer in {raw!r}")
    if not product_id or not variant_id:
        raise argparse.ArgumentTypeError(f"Expected product:variant:qty, got {raw!r}")
    return BundleSelection(product_id=product_id, variant_id=variant_id, quantity=quantity)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bundle-bridge", description="Resolve, price and stock-check bundles")
    parser.add_argument("command", choices=["resolve", "inventory", "price"])
    parser.add_argument("bundle_id", help="Product GID or handle")
    parser.add_argument(
        "--select",
        dest="selections",
        action="append",
        type=parse_selection,
        default=[],
        metavar="PRODUCT:VARIANT:QTY",
        help="Customer selection (repeatable)",
    )
    parser.add_argument("--skip-cache", action="store_true")
    parser.add_argument("--env-file", default=None)
    parser.add_argument("--log-level", default=None)
    return parser


async def run(args: argparse.Namespace) -> dict:
    service = BundleService(load_config_from_env(args.env_file))

    if args.command == "resolve":
        result = await service.resolve(args.bundle_id, skip_cache=args.skip_cache)
    elif args.command == "inventory":
        result = await service.check_inventory(args.bundle_id, args.selections, skip_cache=args.skip_cache)
    else:
        result = await service.calculate_price(args.bundle_id, args.selections, skip_cache=args.skip_cache)
    return result.to_dict()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        output = asyncio.run(run(args))
    except BundleError as e:
        logger.error(f"{args.command} failed for {args.bundle_id}: {e.code.value}")
        print(json.dumps({"error": get_user_message(e), "code": e.code.value}, indent=2))
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
