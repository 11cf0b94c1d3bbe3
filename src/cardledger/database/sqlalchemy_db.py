"""Generic SQLAlchemy card store implementation."""

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from cardledger.database.base import Database
from cardledger.database.models import (
    Card,
    Movement,
    Allocation,
    create_session_factory,
)
from cardledger.database.mappers import card_to_domain, movement_to_domain
from cardledger.domain.entities import (
    AllocationInput,
    Card as DomainCard,
    Movement as DomainMovement,
    ORIGIN_STATEMENT,
)
from cardledger.domain.errors import CardNotFoundError, DomainError, RowNotFoundError, StoreError
from cardledger.utils.date_parser import utc_now

logger = logging.getLogger(__name__)


class SQLAlchemyDatabase(Database):
    """SQLAlchemy-based implementation of the card store."""

    def __init__(self, database_url: str):
        """Initialize SQLAlchemy database.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
        """
        self.database_url = database_url
        self.session_factory = create_session_factory(database_url)
        self._session: Optional[Session] = None

    def _get_session(self) -> Session:
        """Get current session, creating one if needed."""
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    @contextmanager
    def _transaction(
        self, entity: str, operation: str, entity_id: Optional[str] = None
    ) -> Iterator[Session]:
        """Run a mutating call inside one write transaction.

        Domain errors roll back and propagate unchanged; SQLAlchemy errors roll
        back and are wrapped in StoreError with the entity and operation.
        """
        session = self._get_session()
        try:
            yield session
            session.commit()
        except DomainError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Store %s of %s %s failed: %s", operation, entity, entity_id or "", exc)
            raise StoreError(entity, operation, entity_id, exc) from exc
        except Exception:
            session.rollback()
            raise

    @contextmanager
    def _reading(self) -> Iterator[Session]:
        """Run a read and release the transaction afterwards."""
        session = self._get_session()
        try:
            yield session
        finally:
            session.rollback()

    def connect(self) -> None:
        """Connect to the database."""
        # Connection is lazy, so this is a no-op
        pass

    def disconnect(self) -> None:
        """Disconnect from the database."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        # Schema is created automatically by create_session_factory
        pass

    # Card operations
    def create_card(
        self,
        name: str,
        bank: str,
        holder: str,
        card_final: str,
        default_attribution: str,
        active: bool = True,
    ) -> DomainCard:
        """Create a new card."""
        card_id = str(uuid.uuid4())
        with self._transaction("card", "create", card_id) as session:
            now = utc_now()
            card = Card(
                id=card_id,
                name=name,
                bank=bank,
                holder=holder,
                card_final=card_final,
                default_attribution=default_attribution,
                active=active,
                created_at=now,
                updated_at=now,
            )
            session.add(card)
            session.flush()
            result = card_to_domain(card)
        return result

    def update_card(
        self,
        card_id: str,
        name: str,
        bank: str,
        holder: str,
        card_final: str,
        default_attribution: str,
        active: bool,
    ) -> DomainCard:
        """Replace the fields of an existing card."""
        with self._transaction("card", "update", card_id) as session:
            card = session.get(Card, card_id)
            if card is None:
                raise RowNotFoundError("card", card_id)
            card.name = name
            card.bank = bank
            card.holder = holder
            card.card_final = card_final
            card.default_attribution = default_attribution
            card.active = active
            card.updated_at = utc_now()
            session.flush()
            result = card_to_domain(card)
        return result

    def get_card(self, card_id: str) -> Optional[DomainCard]:
        """Get card by ID."""
        with self._reading() as session:
            card = session.get(Card, card_id)
            return card_to_domain(card) if card is not None else None

    def list_cards(self) -> list[DomainCard]:
        """List all cards ordered by name."""
        with self._reading() as session:
            cards = session.query(Card).order_by(Card.name, Card.id).all()
            return [card_to_domain(card) for card in cards]

    def delete_card(self, card_id: str) -> None:
        """Delete a card with all of its movements and allocations."""
        with self._transaction("card", "delete", card_id) as session:
            card = session.get(Card, card_id)
            if card is None:
                raise RowNotFoundError("card", card_id)
            session.delete(card)

    # Movement operations
    def _movement_query(self, session: Session):
        return session.query(Movement).options(
            selectinload(Movement.card), selectinload(Movement.allocations)
        )

    def _replace_allocations(
        self, session: Session, movement: Movement, allocations: Sequence[AllocationInput]
    ) -> None:
        # Flush the orphan deletes first so reused allocation ids do not collide
        movement.allocations.clear()
        session.flush()
        now = utc_now()
        for item in allocations:
            movement.allocations.append(
                Allocation(
                    id=item.id or str(uuid.uuid4()),
                    attribution=item.attribution,
                    amount=item.amount,
                    created_at=now,
                    updated_at=now,
                )
            )

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
    ) -> DomainMovement:
        """Create a movement and its allocations in one transaction."""
        movement_id = movement_id or str(uuid.uuid4())
        with self._transaction("movement", "create", movement_id) as session:
            card = session.get(Card, card_id)
            if card is None:
                raise CardNotFoundError(card_id)
            now = utc_now()
            movement = Movement(
                id=movement_id,
                card=card,
                date=date,
                description=description,
                amount=amount,
                installment_total=installment_total,
                installment_number=installment_number,
                tx_key=tx_key,
                origin=origin,
                status=status,
                month_ref=month_ref,
                note=note,
                created_at=now,
                updated_at=now,
            )
            session.add(movement)
            self._replace_allocations(session, movement, allocations)
            session.flush()
            result = movement_to_domain(movement)
        return result

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
    ) -> DomainMovement:
        """Update a movement and replace its whole allocation set atomically."""
        with self._transaction("movement", "update", movement_id) as session:
            movement = self._movement_query(session).filter(Movement.id == movement_id).first()
            if movement is None:
                raise RowNotFoundError("movement", movement_id)
            card = session.get(Card, card_id)
            if card is None:
                raise CardNotFoundError(card_id)

            movement.card = card
            movement.date = date
            movement.description = description
            movement.amount = amount
            movement.installment_total = installment_total
            movement.installment_number = installment_number
            movement.tx_key = tx_key
            movement.origin = origin
            movement.status = status
            movement.month_ref = month_ref
            movement.note = note
            movement.updated_at = utc_now()
            self._replace_allocations(session, movement, allocations)
            session.flush()
            result = movement_to_domain(movement)
        return result

    def get_movement(self, movement_id: str) -> Optional[DomainMovement]:
        """Get a movement, joined with its card and allocations."""
        with self._reading() as session:
            movement = self._movement_query(session).filter(Movement.id == movement_id).first()
            return movement_to_domain(movement) if movement is not None else None

    def list_movements(
        self,
        month_ref: Optional[str] = None,
        card_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[DomainMovement]:
        """List movements with card and allocations, most recent first."""
        with self._reading() as session:
            query = self._movement_query(session)
            if month_ref is not None:
                query = query.filter(Movement.month_ref == month_ref)
            if card_id is not None:
                query = query.filter(Movement.card_id == card_id)
            if status is not None:
                query = query.filter(Movement.status == status)
            movements = query.order_by(
                Movement.date.desc(), Movement.created_at.desc(), Movement.id
            ).all()
            return [movement_to_domain(m) for m in movements]

    def delete_movement(self, movement_id: str) -> None:
        """Delete a movement and its allocations."""
        with self._transaction("movement", "delete", movement_id) as session:
            movement = session.get(Movement, movement_id)
            if movement is None:
                raise RowNotFoundError("movement", movement_id)
            session.delete(movement)

    def realign_month_ref(self, movement_ids: Sequence[str], month_ref: str) -> int:
        """Move statement-imported movements to another billing month."""
        if not movement_ids:
            return 0
        with self._transaction("movement", "realign") as session:
            changed = (
                session.query(Movement)
                .filter(
                    Movement.id.in_(list(movement_ids)),
                    Movement.origin == ORIGIN_STATEMENT,
                    Movement.month_ref != month_ref,
                )
                .update(
                    {Movement.month_ref: month_ref, Movement.updated_at: utc_now()},
                    synchronize_session=False,
                )
            )
        return changed
