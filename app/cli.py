"""Command-line front end: ``python -m app.cli https://example.com``."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from app.logging_config import configure_logging
from app.services.ai import AI_PROVIDERS
from app.services.config import DEFAULT_CONFIG_PATH, load_config
from app.services.pipeline import DEFAULT_CONCURRENCY, DEFAULT_LIMIT, generate_site

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-txt-gen",
        description="Auto-generate /llm.txt and /llm-full.txt for any website",
    )
    parser.add_argument("url", help="Website URL to generate llm.txt for")
    parser.add_argument("--sitemap", help="Use a specific sitemap URL instead of auto-discovery")
    parser.add_argument("--output", help="Write llm.txt to this path (default: stdout)")
    parser.add_argument("--full-output", help="Also write llm-full.txt to this path")
    parser.add_argument("--limit", type=_positive_int, default=DEFAULT_LIMIT, help="Max number of pages to process")
    parser.add_argument(
        "--concurrency", type=_positive_int, default=DEFAULT_CONCURRENCY, help="Number of pages to fetch in parallel"
    )
    renderer = parser.add_mutually_exclusive_group()
    renderer.add_argument(
        "--firecrawl", action="store_true", help="Render pages with Firecrawl (requires FIRECRAWL_API_KEY)"
    )
    renderer.add_argument("--browser", action="store_true", help="Render pages with a local Playwright browser")
    parser.add_argument("--ai", choices=AI_PROVIDERS, help="Use AI to generate page descriptions")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to llm.config.json")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    return parser


async def run(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    renderer = "firecrawl" if args.firecrawl else "browser" if args.browser else "http"

    site = await generate_site(
        args.url,
        config=config,
        sitemap_url=args.sitemap,
        limit=args.limit,
        concurrency=args.concurrency,
        renderer=renderer,
        ai_provider=args.ai,
    )

    if args.output:
        Path(args.output).write_text(site.llm_txt, encoding="utf-8")
        print(f"Written to {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(site.llm_txt)

    if args.full_output:
        Path(args.full_output).write_text(site.llm_full_txt, encoding="utf-8")
        print(f"Full content written to {args.full_output}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        asyncio.run(run(args))
    except (ValueError, httpx.HTTPError, RuntimeError, OSError) as exc:
        logger.debug("Generation failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
