"""Abstract card store interface."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence
from datetime import date
from decimal import Decimal

from cardledger.domain.entities import AllocationInput, Card, Movement


class Database(ABC):
    """Abstract store for cards, movements and their allocations."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Card operations
    @abstractmethod
    def create_card(
        self,
        name: str,
        bank: str,
        holder: str,
        card_final: str,
        default_attribution: str,
        active: bool = True,
    ) -> Card:
        """Create a new card."""
        pass

    @abstractmethod
    def update_card(
        self,
        card_id: str,
        name: str,
        bank: str,
        holder: str,
        card_final: str,
        default_attribution: str,
        active: bool,
    ) -> Card:
        """Replace the fields of an existing card.

        Raises:
            RowNotFoundError: If the card does not exist
        """
        pass

    @abstractmethod
    def get_card(self, card_id: str) -> Optional[Card]:
        """Get card by ID."""
        pass

    @abstractmethod
    def list_cards(self) -> list[Card]:
        """List all cards ordered by name."""
        pass

    @abstractmethod
    def delete_card(self, card_id: str) -> None:
        """Delete a card with all of its movements and allocations.

        Raises:
            RowNotFoundError: If the card does not exist
        """
        pass

    # Movement operations
    @abstractmethod
    def create_movement(
        self,
        card_id: str,
        date: date,
        description: str,
        amount: Decimal,
        tx_key: str,
        origin: str,
        status: str,
        month_ref: str,
        allocations: Sequence[AllocationInput],
        installment_total: Optional[int] = None,
        installment_number: Optional[int] = None,
        note: str = "",
        movement_id: Optional[str] = None,
    ) -> Movement:
        """Create a movement and its allocations in one transaction.

        Raises:
            CardNotFoundError: If the card does not exist
        """
        pass

    @abstractmethod
    def update_movement(
        self,
        movement_id: str,
        card_id: str,
        date: date,
        description: str,
        amount: Decimal,
        tx_key: str,
        origin: str,
        status: str,
        month_ref: str,
        allocations: Sequence[AllocationInput],
        installment_total: Optional[int] = None,
        installment_number: Optional[int] = None,
        note: str = "",
    ) -> Movement:
        """Update a movement and replace its whole allocation set atomically.

        Raises:
            CardNotFoundError: If the card does not exist
            RowNotFoundError: If the movement does not exist
        """
        pass

    @abstractmethod
    def get_movement(self, movement_id: str) -> Optional[Movement]:
        """Get a movement, joined with its card and allocations."""
        pass

    @abstractmethod
    def list_movements(
        self,
        month_ref: Optional[str] = None,
        card_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Movement]:
        """List movements with card and allocations, most recent first.

        Ordering is date descending, then creation time descending.
        """
        pass

    @abstractmethod
    def delete_movement(self, movement_id: str) -> None:
        """Delete a movement and its allocations.

        Raises:
            RowNotFoundError: If the movement does not exist
        """
        pass

    @abstractmethod
    def realign_month_ref(self, movement_ids: Sequence[str], month_ref: str) -> int:
        """Move statement-imported movements to another billing month.

        Only movements with origin 'fatura' whose month differs are touched.

        Returns:
            Number of movements changed
        """
        pass
