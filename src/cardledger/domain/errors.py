"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class CardNotFoundError(NotFoundError):
    """A movement or import referenced a card that does not exist."""

    def __init__(self, card_id: str):
        super().__init__(card_not_found(card_id))
        self.card_id = card_id


class RowNotFoundError(NotFoundError):
    """An update or delete targeted a row that does not exist."""

    def __init__(self, entity: str, row_id: str):
        super().__init__(row_not_found(entity, row_id))
        self.entity = entity
        self.row_id = row_id


class ConflictError(DomainError):
    """Domain conflict, such as an operation blocked by current state."""


class PendingClassificationError(ConflictError):
    """Totalizers requested while movements of the month are still pending."""

    def __init__(self, pending: int, bank: str, month: str):
        super().__init__(pending_classification(pending, bank, month))
        self.pending = pending
        self.bank = bank
        self.month = month


class StoreError(DomainError):
    """A store transaction failed and was rolled back."""

    def __init__(self, entity: str, operation: str, entity_id: Optional[str], cause: Exception):
        target = f"{entity} {entity_id}" if entity_id else entity
        super().__init__(f"Failed to {operation} {target}: {cause}")
        self.entity = entity
        self.operation = operation
        self.entity_id = entity_id


def card_not_found(card_id: str) -> str:
    """Return message for missing card."""
    return f"Card {card_id} not found"


def row_not_found(entity: str, row_id: str) -> str:
    """Return message for a missing row of any entity."""
    return f"{entity.capitalize()} {row_id} not found"


def pending_classification(pending: int, bank: str, month: str) -> str:
    """Return message when a month still has unclassified movements."""
    noun = "movement" if pending == 1 else "movements"
    return f"There are {pending} {noun} pending classification for {bank} in {month}"


def invalid_choice(field: str, value: str, choices: tuple[str, ...]) -> str:
    """Return message for a value outside a closed set."""
    return f"Invalid {field} '{value}'. Expected one of: {', '.join(choices)}"
