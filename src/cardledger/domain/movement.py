"""Card movement domain service."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from cardledger.database.base import Database
from cardledger.domain.entities import (
    ATTRIBUTIONS,
    MOVEMENT_STATUSES,
    ORIGINS,
    ORIGIN_MANUAL,
    STATUS_PENDING,
    STATUS_RECONCILED,
    AllocationInput,
    Movement as MovementEntity,
)
from cardledger.domain.errors import RowNotFoundError, ValidationError, invalid_choice
from cardledger.domain.fingerprint import build_tx_key
from cardledger.utils.amount_parser import to_money
from cardledger.utils.date_parser import month_of, parse_month

logger = logging.getLogger(__name__)


class MovementService:
    """Service for managing card movements and their allocations."""

    def __init__(self, db: Database):
        """Initialize movement service.

        Args:
            db: Database instance
        """
        self.db = db

    def _validate(
        self,
        origin: str,
        status: str,
        allocations: Sequence[AllocationInput],
        installment_total: Optional[int],
        installment_number: Optional[int],
    ) -> None:
        if origin not in ORIGINS:
            raise ValidationError(invalid_choice("origin", origin, ORIGINS))
        if status not in MOVEMENT_STATUSES:
            raise ValidationError(invalid_choice("status", status, MOVEMENT_STATUSES))
        for allocation in allocations:
            if allocation.attribution not in ATTRIBUTIONS:
                raise ValidationError(invalid_choice("attribution", allocation.attribution, ATTRIBUTIONS))
        if installment_total is not None and installment_total < 1:
            raise ValidationError("Installment total must be at least 1")
        if installment_number is not None and installment_number < 1:
            raise ValidationError("Installment number must be at least 1")
        if installment_total and installment_number and installment_number > installment_total:
            raise ValidationError(
                f"Installment {installment_number} exceeds total of {installment_total}"
            )

    def save_movement(
        self,
        card_id: str,
        date: date,
        description: str,
        amount: Decimal,
        allocations: Sequence[AllocationInput],
        origin: str = ORIGIN_MANUAL,
        status: str = STATUS_PENDING,
        month_ref: Optional[str] = None,
        installment_total: Optional[int] = None,
        installment_number: Optional[int] = None,
        note: str = "",
        tx_key: Optional[str] = None,
        movement_id: Optional[str] = None,
    ) -> MovementEntity:
        """Create a movement, or replace an existing one when movement_id is given.

        The allocation set is always replaced as a whole, in the same
        transaction as the movement row.

        Args:
            month_ref: Billing month; defaults to the current bucket of an
                existing movement, else the month of its date
            tx_key: Fingerprint; computed from the movement fields when omitted

        Raises:
            ValidationError: If a field is outside its allowed values
            CardNotFoundError: If the card does not exist
            RowNotFoundError: If movement_id is given but does not exist
        """
        self._validate(origin, status, allocations, installment_total, installment_number)
        description = description.strip()
        amount = to_money(amount)
        allocations = [
            AllocationInput(attribution=a.attribution, amount=to_money(a.amount), id=a.id)
            for a in allocations
        ]
        allocated = sum((a.amount for a in allocations), Decimal("0"))
        if allocations and allocated != amount:
            logger.debug("Allocations of %s sum to %s, movement amount is %s", description, allocated, amount)

        tx_key = (tx_key or "").strip() or build_tx_key(
            card_id, date, description, amount, installment_total, installment_number
        )
        fields = dict(
            card_id=card_id,
            date=date,
            description=description,
            amount=amount,
            tx_key=tx_key,
            origin=origin,
            status=status,
            allocations=allocations,
            installment_total=installment_total,
            installment_number=installment_number,
            note=(note or "").strip(),
        )

        if movement_id is None:
            month = parse_month(month_ref) if month_ref else month_of(date)
            return self.db.create_movement(month_ref=month, **fields)

        current = self.db.get_movement(movement_id)
        if current is None:
            raise RowNotFoundError("movement", movement_id)
        month = parse_month(month_ref) if month_ref else current.month_ref
        return self.db.update_movement(movement_id=movement_id, month_ref=month, **fields)

    def classify(self, movement_id: str, allocations: Sequence[AllocationInput]) -> MovementEntity:
        """Resolve a movement's allocations and mark it 'conciliado'.

        Raises:
            RowNotFoundError: If the movement does not exist
            ValidationError: If no allocation is given or one is invalid
        """
        if not allocations:
            raise ValidationError("At least one allocation is required to classify a movement")
        current = self.db.get_movement(movement_id)
        if current is None:
            raise RowNotFoundError("movement", movement_id)
        return self.save_movement(
            card_id=current.card_id,
            date=current.date,
            description=current.description,
            amount=current.amount,
            allocations=allocations,
            origin=current.origin,
            status=STATUS_RECONCILED,
            month_ref=current.month_ref,
            installment_total=current.installment_total,
            installment_number=current.installment_number,
            note=current.note,
            tx_key=current.tx_key,
            movement_id=movement_id,
        )

    def get_movement(self, movement_id: str) -> Optional[MovementEntity]:
        return self.db.get_movement(movement_id)

    def list_movements(
        self,
        month_ref: Optional[str] = None,
        card_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[MovementEntity]:
        """List movements with their card and allocations, most recent first."""
        if month_ref is not None:
            month_ref = parse_month(month_ref)
        if status is not None and status not in MOVEMENT_STATUSES:
            raise ValidationError(invalid_choice("status", status, MOVEMENT_STATUSES))
        return self.db.list_movements(month_ref=month_ref, card_id=card_id, status=status)

    def delete_movement(self, movement_id: str) -> Optional[MovementEntity]:
        """Delete a movement and its allocations.

        Returns:
            The deleted movement as it was before deletion

        Raises:
            RowNotFoundError: If the movement does not exist
        """
        current = self.db.get_movement(movement_id)
        if current is None:
            raise RowNotFoundError("movement", movement_id)
        self.db.delete_movement(movement_id)
        logger.info("Deleted movement %s (%s)", movement_id, current.description)
        return current

    def realign_month_ref(self, movement_ids: Sequence[str], month_ref: str) -> int:
        """Move statement-imported movements to the given billing month."""
        month_ref = parse_month(month_ref)
        unique_ids = list(dict.fromkeys(movement_ids))
        changed = self.db.realign_month_ref(unique_ids, month_ref)
        if changed:
            logger.info("Realigned %d movement(s) to %s", changed, month_ref)
        return changed
