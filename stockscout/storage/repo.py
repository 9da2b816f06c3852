"""Flat-file output helpers: product CSV export and reference SKU matching."""

from __future__ import annotations

import csv
import os
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Iterable

from stockscout.extractors.schemas import ProductRecord
from stockscout.logging_config import get_logger

LOGGER = get_logger(__name__)

CSV_HEADER = [
    "item_name",
    "price",
    "merchant_supplied_id",
    "brand",
    "category",
    "image_url",
]
SKU_COLUMN = "merchant_supplied_id"


@dataclass(frozen=True)
class MatchReport:
    matched: int
    total: int
    missing: tuple[str, ...] = ()

    @property
    def summary(self) -> str:
        return f"{self.matched} of {self.total}"


def output_path(directory: str | Path, template: str, store_key: str) -> Path:
    """Deterministic per-store file path, e.g. ``outputs/dallas_products.csv``."""

    return Path(directory) / template.format(store=store_key)


def _row_to_values(record: ProductRecord) -> list[str]:
    data = record.model_dump()
    return ["" if data.get(column) is None else str(data[column]) for column in CSV_HEADER]


def write_csv(records: Iterable[ProductRecord], csv_path: str | Path) -> int:
    """Atomically write *records* with the fixed column order; return row count."""

    path = Path(csv_path)
    os.makedirs(path.parent, exist_ok=True)

    count = 0
    with NamedTemporaryFile(
        mode="w", newline="", encoding="utf-8", dir=str(path.parent), delete=False
    ) as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_HEADER)
        for record in records:
            writer.writerow(_row_to_values(record))
            count += 1
        handle.flush()
        os.fsync(handle.fileno())
        tmp_name = handle.name

    os.replace(tmp_name, path)
    LOGGER.info("CSV saved to: %s (%d rows)", path, count)
    return count


def read_sku_column(csv_path: str | Path) -> set[str]:
    with Path(csv_path).open("r", newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        return {
            (row.get(SKU_COLUMN) or "").strip()
            for row in reader
            if (row.get(SKU_COLUMN) or "").strip()
        }


def ensure_reference_file(reference_path: str | Path) -> bool:
    """Create a header-only reference file when absent; True if created."""

    path = Path(reference_path)
    if path.exists():
        return False
    os.makedirs(path.parent, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        csv.writer(handle).writerow([SKU_COLUMN])
    LOGGER.warning("Reference file %s was missing; created it with a header row only", path)
    return True


def validate_matches(scraped_path: str | Path, reference_path: str | Path) -> MatchReport:
    """Log how many reference SKUs were found among the scraped SKUs."""

    ensure_reference_file(reference_path)
    scraped_ids = read_sku_column(scraped_path)
    reference_ids = read_sku_column(reference_path)

    matched = reference_ids & scraped_ids
    report = MatchReport(
        matched=len(matched),
        total=len(reference_ids),
        missing=tuple(sorted(reference_ids - scraped_ids)),
    )
    LOGGER.info("SKU matches: %s", report.summary)
    if report.missing:
        LOGGER.debug("Reference SKUs not scraped: %s", ", ".join(report.missing))
    return report
