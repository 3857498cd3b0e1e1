from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

import httpx

from .scraping.exceptions import ConfigurationError, StoreError
from .scraping.models.template import load_template_file
from .scraping.persistence import persist
from .scraping.probe import probe_request
from .scraping.template_builder import enrich_template, propose_template
from .scraping.universal_scraper import UniversalScraper
from .services.log_hub import LogHub, user_logger
from .services.store_client import connect_store, get_app_connection

CLI_USER = "cli"


def _setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure logging to both stderr and a rotating file."""

    log_dir = Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    handlers = [
        RotatingFileHandler(log_dir / "api_scrape.log", maxBytes=5_000_000, backupCount=3),
        logging.StreamHandler(sys.stderr),
    ]
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=fmt, handlers=handlers, force=True)
    # HTTPX logs every request at INFO; the engine already logs its own request lines.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("scrape.cli")


def _print_json(value: Any) -> None:
    print(json.dumps(value, ensure_ascii=False, indent=2, default=str))


async def _run(args: argparse.Namespace, logger: logging.Logger) -> int:
    partial = load_template_file(Path(args.template)) if args.template else None
    template = enrich_template(partial, args.site, args.target_url)
    hub = LogHub()
    log = user_logger(hub, CLI_USER)
    log(f"[start] universal {args.site} {args.target_url}")

    scraper = UniversalScraper(template, log=log, rate_limit_ms=args.rate_limit_ms)
    result = await scraper.run(args.target_url, args.max_pages)
    summary: dict[str, Any] = result.model_dump()

    if args.persist and result.success:
        store = connect_store(get_app_connection())
        outcome = await persist(result.jobs, args.site, store, log=log)
        summary["persisted"] = {
            "saved": outcome.saved_count,
            "failed": outcome.failed_count,
            "total": outcome.total,
        }

    _print_json(summary)
    if not result.success:
        logger.error("Scrape failed: %s", result.error)
        return 1
    return 0


async def _probe(args: argparse.Namespace) -> int:
    body = json.loads(args.body) if args.body else None
    headers = json.loads(args.headers) if args.headers else {}
    result = await probe_request(args.url, args.method, headers, body)
    _print_json(result)
    return 0 if result["ok"] else 1


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Universal API scraper for recruitment-site job listings")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Page through a JSON API and print the mapped jobs")
    run.add_argument("--template", help="Request template document (.json/.yaml); catalog default when omitted")
    run.add_argument("--target-url", required=True, help="Listing page the template belongs to")
    run.add_argument("--site", required=True, help="Site id / source tag, e.g. tencent")
    run.add_argument("--max-pages", type=int, default=None)
    run.add_argument("--rate-limit-ms", type=int, default=None)
    run.add_argument("--persist", action="store_true", help="Insert jobs into the configured store")

    propose = sub.add_parser("propose", help="Print the catalog template proposal for a site")
    propose.add_argument("--site", required=True)
    propose.add_argument("--base-url", required=True)

    probe = sub.add_parser("probe", help="Send one request and preview the response")
    probe.add_argument("--url", required=True)
    probe.add_argument("--method", default="GET")
    probe.add_argument("--headers", help="JSON object of request headers")
    probe.add_argument("--body", help="JSON request body")

    args = p.parse_args(argv)
    logger = _setup_logging(args.verbose)

    try:
        if args.command == "propose":
            _print_json(propose_template(args.site, args.base_url))
            return 0
        if args.command == "probe":
            return asyncio.run(_probe(args))
        return asyncio.run(_run(args, logger))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc.message)
        return 2
    except StoreError as exc:
        logger.error("Store error: %s", exc.message)
        return 3
    except json.JSONDecodeError as exc:
        logger.error("Invalid JSON argument: %s", exc)
        return 2
    except httpx.HTTPError as exc:
        logger.error("Request failed: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
