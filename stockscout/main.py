"""Command-line interface entry point for the stockscout scraper."""

from __future__ import annotations

import argparse
import asyncio
from copy import deepcopy
from pathlib import Path
from typing import Any, Iterable

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from stockscout.errors import ConfigurationError, PageLoadError, StoreContextError
from stockscout.extractors.schemas import ProductRecord, StoreLocation
from stockscout.logging_config import get_logger, set_level
from stockscout.playwright_env import scrape_policy
from stockscout.retailers.bestbuy import run_for_store
from stockscout.storage import repo

LOGGER = get_logger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = PACKAGE_DIR / "config.yml"

STORE_KEYS = ("sfBayArea", "minneapolis", "dallas")
CATEGORY_KEYS = ("tv", "computer", "accessories")

DEFAULT_CONFIG: dict[str, Any] = {
    "base_url": "https://www.bestbuy.com",
    "store_directory": "catalog/stores.yml",
    "categories": {key: key for key in CATEGORY_KEYS},
    "output": {
        "dir": "outputs",
        "filename_template": "{store}_products.csv",
    },
    "reference": {
        "dir": "reference",
        "filename_template": "{store}_reference.csv",
    },
}


def _positive_int(parser: argparse.ArgumentParser, value: int | None) -> None:
    if value is not None and value < 1:
        parser.error("The --page option must be a positive integer (e.g., 1, 2, 3, ...)")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the application."""

    parser = argparse.ArgumentParser(
        description="Scrape in-store pickup listings for one Best Buy store and category."
    )
    parser.add_argument("--store", required=True, choices=STORE_KEYS, help="Store key to scrape.")
    parser.add_argument(
        "--category", required=True, choices=CATEGORY_KEYS, help="Product category to search."
    )
    parser.add_argument(
        "--page",
        type=int,
        default=None,
        help="Number of result pages to scrape (if omitted, all pages will be scraped).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file overriding the packaged config.yml.",
    )
    parser.add_argument(
        "--reference",
        type=Path,
        default=None,
        help="Reference SKU CSV to validate against (defaults to the per-store file).",
    )
    parser.add_argument(
        "--skip-validation",
        action="store_true",
        help="Do not compare scraped SKUs with the reference file.",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        type=str.upper,
        default=None,
        help="Override LOG_LEVEL for this run.",
    )

    args = parser.parse_args(list(argv) if argv is not None else None)
    _positive_int(parser, args.page)
    return args


def _deep_merge(default: Any, override: Any) -> Any:
    if not isinstance(default, dict) or not isinstance(override, dict):
        return deepcopy(override)

    merged: dict[str, Any] = deepcopy(default)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def _load_config(path: Path | None) -> dict[str, Any]:
    merged = _deep_merge(DEFAULT_CONFIG, _read_yaml(DEFAULT_CONFIG_PATH))
    if path is None:
        return merged
    if not path.exists():
        LOGGER.warning("Configuration file %s not found; using defaults", path)
        return merged
    return _deep_merge(merged, _read_yaml(path))


def _resolve_path(value: str | Path) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    packaged = PACKAGE_DIR / path
    if packaged.exists():
        return packaged
    return Path.cwd() / path


def _load_store_directory(path: Path) -> dict[str, StoreLocation]:
    if not path.exists():
        raise ConfigurationError(f"Store directory not found: {path}")
    entries = _read_yaml(path).get("stores") or {}
    directory: dict[str, StoreLocation] = {}
    for key, fields in entries.items():
        try:
            directory[str(key)] = StoreLocation.model_validate(fields or {})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid store entry {key!r} in {path}: {exc}") from exc
    return directory


def _lookup_store(directory: dict[str, StoreLocation], store_key: str) -> StoreLocation:
    location = directory.get(store_key)
    if location is None:
        raise ConfigurationError(f"Unknown store key {store_key!r}")
    if not location.search_attempts():
        raise ConfigurationError(f"Store {store_key!r} has no city, state or ZIP to search")
    return location


def _resolve_search_term(config: dict[str, Any], category: str) -> str:
    term = str((config.get("categories") or {}).get(category) or "").strip()
    if not term:
        raise ConfigurationError(f"No search term configured for category {category!r}")
    return term


async def _async_main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    if args.log_level:
        set_level(args.log_level)
    load_dotenv()

    config = _load_config(args.config)
    directory = _load_store_directory(_resolve_path(config["store_directory"]))
    location = _lookup_store(directory, args.store)
    search_term = _resolve_search_term(config, args.category)
    policy = scrape_policy()

    output_conf = config.get("output", {})
    csv_path = repo.output_path(
        output_conf.get("dir", "outputs"),
        output_conf.get("filename_template", "{store}_products.csv"),
        args.store,
    )
    reference_conf = config.get("reference", {})
    reference_path = args.reference or repo.output_path(
        reference_conf.get("dir", "reference"),
        reference_conf.get("filename_template", "{store}_reference.csv"),
        args.store,
    )

    if args.page:
        LOGGER.info("Scraping %s page%s only...", args.page, "s" if args.page > 1 else "")
    else:
        LOGGER.info("Scraping all pages...")
    LOGGER.info(
        "Navigating to Best Buy | store=%s (%s) | category=%s",
        args.store,
        location.display_location or location.store_id,
        args.category,
    )

    records: list[ProductRecord] = []
    exit_code = 0
    try:
        await run_for_store(
            location,
            args.store,
            args.category,
            search_term,
            records,
            policy=policy,
            page_limit=args.page,
            base_url=config.get("base_url") or DEFAULT_CONFIG["base_url"],
        )
    except StoreContextError as exc:
        LOGGER.error("Location setup failed; no output written: %s", exc)
        return 1
    except PageLoadError as exc:
        LOGGER.error(
            "Pagination aborted; writing %d partial records: %s",
            len(records),
            exc,
        )
        exit_code = 1

    repo.write_csv(records, csv_path)

    if args.skip_validation:
        LOGGER.info("Validation skipped")
    else:
        repo.validate_matches(csv_path, reference_path)
    return exit_code


def main() -> None:
    try:
        exit_code = asyncio.run(_async_main())
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except KeyboardInterrupt:  # pragma: no cover - interactive safety
        LOGGER.info("Interrupted by user")
        exit_code = 130
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
