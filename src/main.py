# src/main.py - v1
"""CLI entry point.

Usage:
    shelfscan resolve [--barcode CODE] [--image PATH] [--dimensions]
    shelfscan analyze <product_id> --image PATH
    shelfscan invalidate [KEY] [--product-id ID]
    shelfscan invalidate-dimensions [--product-id ID ...] [--category NAME] [--expired]
    shelfscan report <product_id> --session-id ID [--barcode CODE] [--image PATH] [--feedback TEXT]
    shelfscan stats
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import BaseModel

from shelfscan.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


async def _run(args: argparse.Namespace) -> int:
    from shelfscan.api.facade import build_service
    from shelfscan.config.settings import load_settings
    from shelfscan.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format="text" if args.text_logs else settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    service = build_service(settings)
    try:
        return await args.func(service, args)
    finally:
        await service.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelfscan",
        description=f"shelfscan v{__version__} - multi-tier product identification",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--text-logs", action="store_true", help="Human-readable logs instead of JSON")

    subparsers = parser.add_subparsers(dest="command")

    p_resolve = subparsers.add_parser("resolve", help="Identify a product from a barcode and/or photo")
    p_resolve.add_argument("--barcode", default=None)
    p_resolve.add_argument("--image", type=Path, default=None, help="Path to a product photo")
    p_resolve.add_argument("--owner", default="cli")
    p_resolve.add_argument(
        "--dimensions", action="store_true",
        help="Also run the five-dimension analysis (requires --image)",
    )
    p_resolve.set_defaults(func=_cmd_resolve)

    p_analyze = subparsers.add_parser("analyze", help="Five-dimension analysis of a known product")
    p_analyze.add_argument("product_id")
    p_analyze.add_argument("--image", type=Path, required=True)
    p_analyze.set_defaults(func=_cmd_analyze)

    p_invalidate = subparsers.add_parser("invalidate", help="Drop identity-cache entries")
    p_invalidate.add_argument("key", nargs="?", default=None, help="Barcode or image fingerprint")
    p_invalidate.add_argument("--product-id", default=None)
    p_invalidate.set_defaults(func=_cmd_invalidate)

    p_dims = subparsers.add_parser("invalidate-dimensions", help="Drop cached dimension analyses")
    p_dims.add_argument("--product-id", action="append", dest="product_ids", default=None)
    p_dims.add_argument("--category", default=None)
    p_dims.add_argument("--expired", action="store_true", help="Only clear expired entries")
    p_dims.set_defaults(func=_cmd_invalidate_dimensions)

    p_report = subparsers.add_parser("report", help="Report a misidentified product")
    p_report.add_argument("product_id")
    p_report.add_argument("--session-id", required=True)
    p_report.add_argument("--owner", default="cli")
    p_report.add_argument("--barcode", default=None)
    p_report.add_argument("--image", type=Path, default=None)
    p_report.add_argument("--feedback", default=None)
    p_report.set_defaults(func=_cmd_report)

    p_stats = subparsers.add_parser("stats", help="Show cache statistics")
    p_stats.set_defaults(func=_cmd_stats)

    return parser


async def _cmd_resolve(service, args: argparse.Namespace) -> int:
    from shelfscan.core.models import ImagePayload, ResolutionRequest

    if args.barcode is None and args.image is None:
        logger.error("Provide --barcode, --image or both")
        return 1
    request = ResolutionRequest(
        barcode=args.barcode,
        image=ImagePayload.from_file(args.image) if args.image else None,
        owner_id=args.owner,
    )
    outcome = await service.scan(request, analyze_dimensions=args.dimensions)
    _print(outcome)
    return 0 if outcome.success else 2


async def _cmd_analyze(service, args: argparse.Namespace) -> int:
    from shelfscan.core.models import ImagePayload, ProductContext

    product = await service.get_product(args.product_id)
    if product is None:
        logger.error("Unknown product: %s", args.product_id)
        return 1
    outcome = await service.get_dimension_analysis(
        product.id, ProductContext.from_identity(product), ImagePayload.from_file(args.image)
    )
    _print(outcome)
    return 0 if outcome.success else 2


async def _cmd_invalidate(service, args: argparse.Namespace) -> int:
    if args.key is None and args.product_id is None:
        logger.error("Provide a key, --product-id or both")
        return 1
    removed = await service.invalidate_identity(args.key, args.product_id)
    print(f"Removed {len(removed)} identity cache entries")
    return 0


async def _cmd_invalidate_dimensions(service, args: argparse.Namespace) -> int:
    from shelfscan.cache.models import DimensionInvalidationFilter

    if args.expired:
        removed = await service.clear_expired_dimensions()
    elif args.product_ids is None and args.category is None:
        logger.error("Provide --product-id, --category or --expired")
        return 1
    else:
        removed = await service.invalidate_dimensions(
            criteria=DimensionInvalidationFilter(product_ids=args.product_ids, category=args.category)
        )
    print(f"Removed {removed} dimension analyses")
    return 0


async def _cmd_report(service, args: argparse.Namespace) -> int:
    from shelfscan.core.models import ImagePayload
    from shelfscan.reporting.models import MisidentificationReport

    product = await service.get_product(args.product_id)
    if product is None:
        logger.error("Unknown product: %s", args.product_id)
        return 1
    outcome = await service.report_misidentification(MisidentificationReport(
        owner_id=args.owner,
        session_id=args.session_id,
        incorrect_product=product,
        barcode=args.barcode,
        image=ImagePayload.from_file(args.image) if args.image else None,
        feedback=args.feedback,
    ))
    _print(outcome)
    return 0


async def _cmd_stats(service, args: argparse.Namespace) -> int:
    _print(await service.cache_stats())
    return 0


def _print(model: BaseModel) -> None:
    print(model.model_dump_json(indent=2))


if __name__ == "__main__":
    sys.exit(main())
