"""SQLAlchemy models for the cardledger database."""

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Index,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

from cardledger.utils.date_parser import utc_now

Base = declarative_base()


class Card(Base):
    """Credit card model."""

    __tablename__ = "cards"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    bank = Column(String, nullable=False)
    holder = Column(String, nullable=False)
    card_final = Column(String, nullable=False, default="")
    default_attribution = Column(String, nullable=False, default="AMBOS")
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    movements = relationship(
        "Movement", back_populates="card", cascade="all, delete-orphan", passive_deletes=True
    )


class Movement(Base):
    """Card movement model."""

    __tablename__ = "card_movements"

    id = Column(String(36), primary_key=True)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    installment_total = Column(Integer, nullable=True)
    installment_number = Column(Integer, nullable=True)
    tx_key = Column(String, nullable=False)
    origin = Column(String, nullable=False)
    status = Column(String, nullable=False)
    month_ref = Column(String(7), nullable=False)
    note = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)

    # tx_key is deliberately not unique: identical purchases share a key
    __table_args__ = (
        Index("idx_card_movements_tx", "card_id", "tx_key"),
        Index("idx_card_movements_month", "month_ref", "status"),
    )

    # Relationships
    card = relationship("Card", back_populates="movements")
    allocations = relationship(
        "Allocation",
        back_populates="movement",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Allocation.id",
    )


class Allocation(Base):
    """Per-movement attribution model."""

    __tablename__ = "card_allocations"

    id = Column(String(36), primary_key=True)
    movement_id = Column(
        String(36), ForeignKey("card_movements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attribution = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    movement = relationship("Movement", back_populates="allocations")


class LedgerEntry(Base):
    """Household ledger entry model, used by the local ledger store adapter."""

    __tablename__ = "ledger_entries"

    id = Column(String(36), primary_key=True)
    date = Column(Date, nullable=False)
    type = Column(String, nullable=False)
    description = Column(String, nullable=False)
    category = Column(String, nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=False)
    attribution = Column(String, nullable=False)
    method = Column(String, nullable=False)
    installment_total = Column(Integer, nullable=True)
    installment_number = Column(Integer, nullable=True)
    note = Column(String, nullable=False, default="")
    payer = Column(String, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)


def _configure_sqlite(engine: Engine) -> None:
    """Enforce foreign keys and take the write lock when a transaction begins.

    pysqlite's own transaction handling is disabled so that every SQLAlchemy
    transaction starts with BEGIN IMMEDIATE.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
