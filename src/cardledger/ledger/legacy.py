"""Legacy mirror adapters."""

import csv
import logging
from pathlib import Path

from cardledger.domain.entities import LedgerEntry, LegacyResult
from cardledger.ledger.base import LegacyMirror

logger = logging.getLogger(__name__)

LEGACY_COLUMNS = ["data", "descricao", "categoria", "valor", "atribuicao", "quem_pagou", "metodo"]
LAST_COLUMN = chr(ord("A") + len(LEGACY_COLUMNS) - 1)


def legacy_row(entry: LedgerEntry) -> list[str]:
    """Render an entry the way the legacy grid stores it (day-first date, comma decimals)."""
    return [
        entry.date.strftime("%d/%m/%Y"),
        entry.description,
        entry.category,
        f"{entry.amount:.2f}".replace(".", ","),
        entry.attribution,
        entry.payer,
        entry.method,
    ]


class DisabledLegacyMirror(LegacyMirror):
    """Mirror used when no legacy target is configured."""

    def append_mirrored(self, entry: LedgerEntry) -> LegacyResult:
        return LegacyResult(status="skipped", message="Legacy mirror disabled")

    def remove_mirrored(self, entry: LedgerEntry) -> LegacyResult:
        return LegacyResult(status="skipped", message="Legacy mirror disabled")


class CSVLegacyMirror(LegacyMirror):
    """Mirror that keeps ledger entries in a CSV grid, one row per entry."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_rows(self) -> list[list[str]]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f))
        return rows[1:] if rows and rows[0] == LEGACY_COLUMNS else rows

    def _write_rows(self, rows: list[list[str]]) -> None:
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(LEGACY_COLUMNS)
            writer.writerows(rows)

    def append_mirrored(self, entry: LedgerEntry) -> LegacyResult:
        try:
            rows = self._read_rows()
            rows.append(legacy_row(entry))
            self._write_rows(rows)
        except OSError as e:
            logger.warning("Could not append %s to legacy mirror %s: %s", entry.id, self.path, e)
            return LegacyResult(status="error", message=str(e))
        # Header is row 1
        row_number = len(rows) + 1
        return LegacyResult(status="success", range=f"A{row_number}:{LAST_COLUMN}{row_number}")

    def remove_mirrored(self, entry: LedgerEntry) -> LegacyResult:
        try:
            rows = self._read_rows()
            target = legacy_row(entry)
            for index, row in enumerate(rows):
                if row[:4] == target[:4]:
                    del rows[index]
                    self._write_rows(rows)
                    row_number = index + 2
                    return LegacyResult(
                        status="success", range=f"A{row_number}:{LAST_COLUMN}{row_number}"
                    )
        except OSError as e:
            logger.warning("Could not remove %s from legacy mirror %s: %s", entry.id, self.path, e)
            return LegacyResult(status="error", message=str(e))
        return LegacyResult(status="skipped", message="Entry not found in legacy mirror")
