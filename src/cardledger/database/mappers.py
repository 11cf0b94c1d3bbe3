"""Mapper functions to convert between domain models and SQLAlchemy models."""

from cardledger.domain import entities as domain
from cardledger.database.models import (
    Card as ORMCard,
    Movement as ORMMovement,
    Allocation as ORMAllocation,
    LedgerEntry as ORMLedgerEntry,
)


def card_to_domain(orm_card: ORMCard) -> domain.Card:
    """Convert SQLAlchemy Card model to domain Card entity."""
    return domain.Card(
        id=orm_card.id,
        name=orm_card.name,
        bank=orm_card.bank,
        holder=orm_card.holder,
        card_final=orm_card.card_final or "",
        default_attribution=orm_card.default_attribution,
        active=bool(orm_card.active),
        created_at=orm_card.created_at,
        updated_at=orm_card.updated_at,
    )


def allocation_to_domain(orm_allocation: ORMAllocation) -> domain.Allocation:
    """Convert SQLAlchemy Allocation model to domain Allocation entity."""
    return domain.Allocation(
        id=orm_allocation.id,
        movement_id=orm_allocation.movement_id,
        attribution=orm_allocation.attribution,
        amount=orm_allocation.amount,
        created_at=orm_allocation.created_at,
        updated_at=orm_allocation.updated_at,
    )


def movement_to_domain(orm_movement: ORMMovement) -> domain.Movement:
    """Convert a Movement row, with its card and allocations, to a domain entity."""
    return domain.Movement(
        id=orm_movement.id,
        card_id=orm_movement.card_id,
        date=orm_movement.date,
        description=orm_movement.description,
        amount=orm_movement.amount,
        installment_total=orm_movement.installment_total,
        installment_number=orm_movement.installment_number,
        tx_key=orm_movement.tx_key,
        origin=orm_movement.origin,
        status=orm_movement.status,
        month_ref=orm_movement.month_ref,
        note=orm_movement.note or "",
        created_at=orm_movement.created_at,
        updated_at=orm_movement.updated_at,
        card=card_to_domain(orm_movement.card) if orm_movement.card is not None else None,
        allocations=tuple(
            allocation_to_domain(a) for a in sorted(orm_movement.allocations, key=lambda a: a.id)
        ),
    )


def ledger_entry_to_domain(orm_entry: ORMLedgerEntry) -> domain.LedgerEntry:
    """Convert SQLAlchemy LedgerEntry model to domain LedgerEntry entity."""
    return domain.LedgerEntry(
        id=orm_entry.id,
        date=orm_entry.date,
        type=orm_entry.type,
        description=orm_entry.description,
        category=orm_entry.category or "",
        amount=orm_entry.amount,
        attribution=orm_entry.attribution,
        method=orm_entry.method,
        installment_total=orm_entry.installment_total,
        installment_number=orm_entry.installment_number,
        note=orm_entry.note or "",
        created_at=orm_entry.created_at,
        updated_at=orm_entry.updated_at,
        payer=orm_entry.payer,
    )


def apply_ledger_entry(orm_entry: ORMLedgerEntry, entry: domain.LedgerEntry) -> None:
    """Copy every field of a domain ledger entry onto a row."""
    orm_entry.date = entry.date
    orm_entry.type = entry.type
    orm_entry.description = entry.description
    orm_entry.category = entry.category
    orm_entry.amount = entry.amount
    orm_entry.attribution = entry.attribution
    orm_entry.method = entry.method
    orm_entry.installment_total = entry.installment_total
    orm_entry.installment_number = entry.installment_number
    orm_entry.note = entry.note
    orm_entry.payer = entry.payer
    orm_entry.created_at = entry.created_at
    orm_entry.updated_at = entry.updated_at
