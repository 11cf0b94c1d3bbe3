"""Statement import domain service."""

import csv
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Sequence

from cardledger.database.base import Database
from cardledger.domain.card import CardService, default_attribution_for_card
from cardledger.domain.entities import (
    AllocationInput,
    ImportLine,
    ImportRunResult,
    LINE_ALREADY_POSTED,
    LINE_NEW,
    ORIGIN_STATEMENT,
    STATUS_PENDING,
)
from cardledger.domain.errors import ValidationError
from cardledger.domain.movement import MovementService
from cardledger.domain.reconciliation import filter_lines_by_card_final, reconcile_import_lines
from cardledger.utils.amount_parser import parse_amount, to_money
from cardledger.utils.date_parser import parse_date, parse_month

logger = logging.getLogger(__name__)

IMPORT_MARKER = "[IMPORT_FATURA]"
LINE_FIELDS = (
    "date",
    "description",
    "amount",
    "installment_total",
    "installment_number",
    "card_final",
    "note",
)
REQUIRED_LINE_FIELDS = ("date", "description", "amount")


def _optional_int(value: Any, field_name: str, row_label: str) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{row_label}: invalid {field_name} '{value}'")


def parse_import_line(values: dict[str, Any], row_label: str) -> ImportLine:
    """Build an ImportLine from a mapping with canonical field names.

    Raises:
        ValidationError: If a required field is missing or malformed
    """
    for field_name in REQUIRED_LINE_FIELDS:
        value = values.get(field_name)
        if value is None or str(value).strip() == "":
            raise ValidationError(f"{row_label}: missing {field_name}")

    try:
        line_date = parse_date(str(values["date"]))
    except ValueError as e:
        raise ValidationError(f"{row_label}: {e}")

    raw_amount = values["amount"]
    try:
        if isinstance(raw_amount, (int, float, Decimal)):
            amount = to_money(raw_amount)
        else:
            amount = to_money(parse_amount(str(raw_amount)))
    except ValueError as e:
        raise ValidationError(f"{row_label}: {e}")

    return ImportLine(
        date=line_date,
        description=str(values["description"]).strip(),
        amount=amount,
        installment_total=_optional_int(values.get("installment_total"), "installment_total", row_label),
        installment_number=_optional_int(values.get("installment_number"), "installment_number", row_label),
        card_final=str(values.get("card_final") or "").strip(),
        note=str(values.get("note") or "").strip(),
    )


def load_import_lines(file_path: str) -> list[ImportLine]:
    """Load well-formed line items from a JSON or CSV file.

    JSON files hold a list of objects; CSV files have a header row. Both use
    the canonical field names in LINE_FIELDS.

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the file or one of its lines is malformed
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Import file not found: {file_path}")

    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            try:
                payload = json.load(f)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Invalid JSON in {file_path}: {e}")
        if isinstance(payload, dict):
            payload = payload.get("lines", [])
        if not isinstance(payload, list):
            raise ValidationError("JSON import must be a list of line objects")
        lines = []
        for index, item in enumerate(payload, start=1):
            if not isinstance(item, dict):
                raise ValidationError(f"Line {index}: expected an object")
            lines.append(parse_import_line(item, f"Line {index}"))
        return lines

    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValidationError("CSV file has no columns")
        missing = [name for name in REQUIRED_LINE_FIELDS if name not in reader.fieldnames]
        if missing:
            raise ValidationError(f"CSV file missing required columns: {', '.join(missing)}")
        # Start at 2 (header is row 1)
        return [parse_import_line(row, f"Row {row_num}") for row_num, row in enumerate(reader, start=2)]


class CardImportService:
    """Service for reconciling and importing statement lines of a card."""

    def __init__(self, db: Database):
        """Initialize import service.

        Args:
            db: Database instance
        """
        self.db = db
        self.card_service = CardService(db)
        self.movement_service = MovementService(db)

    def preview(self, card_id: str, lines: Sequence[ImportLine]) -> ImportRunResult:
        """Reconcile lines without writing anything.

        Returns the same shape as run(), so callers can show counts first.
        """
        return self.run(card_id, lines, dry_run=True)

    def run(
        self,
        card_id: str,
        lines: Sequence[ImportLine],
        statement_month: Optional[str] = None,
        dry_run: bool = False,
    ) -> ImportRunResult:
        """Reconcile lines against the card's movements and persist the new ones.

        Lines for a different card final are dropped first. Already posted
        lines are moved to the statement month when one is given; new lines
        become 'fatura' movements pending classification, allocated in full
        to the card's default attribution.

        Raises:
            CardNotFoundError: If the card does not exist
        """
        card = self.card_service.require_card(card_id)
        if statement_month is not None and statement_month.strip():
            statement_month = parse_month(statement_month)
        else:
            statement_month = None

        kept, filtered = filter_lines_by_card_final(lines, card.card_final)
        if filtered:
            logger.info("Ignored %d line(s) printed for another card final", filtered)

        existing = self.db.list_movements(card_id=card.id)
        result = reconcile_import_lines(card, kept, existing)
        attribution = default_attribution_for_card(card)
        new_items = [item for item in result.preview if item.status == LINE_NEW]

        realigned = 0
        if not dry_run:
            if statement_month:
                matched_ids = [
                    item.movement_id
                    for item in result.preview
                    if item.status == LINE_ALREADY_POSTED and item.movement_id
                ]
                realigned = self.movement_service.realign_month_ref(matched_ids, statement_month)

            for item in new_items:
                line = item.line
                note = f"{line.note} {IMPORT_MARKER}" if line.note else IMPORT_MARKER
                self.movement_service.save_movement(
                    card_id=card.id,
                    date=line.date,
                    description=line.description,
                    amount=line.amount,
                    allocations=[AllocationInput(attribution=attribution, amount=line.amount)],
                    origin=ORIGIN_STATEMENT,
                    status=STATUS_PENDING,
                    month_ref=statement_month,
                    installment_total=line.installment_total,
                    installment_number=line.installment_number,
                    note=note,
                    tx_key=item.tx_key,
                )
            logger.info(
                "Imported %d new movement(s) for card %s, %d already posted",
                len(new_items),
                card.name,
                result.conciliados,
            )

        return ImportRunResult(
            card=card,
            total=result.total,
            conciliados=result.conciliados,
            novos=result.novos,
            filtered_by_card_final=filtered,
            realigned_month_ref=realigned,
            imported=0 if dry_run else len(new_items),
            pending_classification=len(new_items),
            default_status=STATUS_PENDING,
            default_attribution=attribution,
            dry_run=dry_run,
            preview=result.preview,
        )
