"""Domain model entities for cardledger.

These are pure data classes representing business concepts, independent of
database schema. Stores convert their rows into these before handing them to
the reconciliation and totalizer engines.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

ATTRIBUTIONS = ("WALKER", "DEA", "AMBOS", "AMBOS_I")
TOTALIZER_BUCKETS = ("WALKER", "AMBOS", "DEA")
BANKS = ("C6", "BB", "OUTRO")
HOLDERS = ("WALKER", "DEA", "JULIA", "OUTRO")
PAYERS = ("WALKER", "DEA")
ORIGINS = ("manual", "fatura")
MOVEMENT_STATUSES = ("pendente", "conciliado")
ENTRY_TYPES = ("despesa", "receita")
PAYMENT_METHODS = ("pix", "cartao", "dinheiro", "transferencia", "outro")
LEGACY_STATUSES = ("success", "error", "skipped")

ORIGIN_MANUAL = "manual"
ORIGIN_STATEMENT = "fatura"
STATUS_PENDING = "pendente"
STATUS_RECONCILED = "conciliado"
LINE_NEW = "novo"
LINE_ALREADY_POSTED = "ja_lancado"
METHOD_CARD = "cartao"
ENTRY_EXPENSE = "despesa"


@dataclass(frozen=True)
class Card:
    """Credit card domain entity."""

    id: str
    name: str
    bank: str
    holder: str
    card_final: str
    default_attribution: str
    active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Allocation:
    """Share of a movement attributed to one cost bucket."""

    id: str
    movement_id: str
    attribution: str
    amount: Decimal
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class AllocationInput:
    """Allocation as supplied by callers; the store assigns ids and timestamps."""

    attribution: str
    amount: Decimal
    id: Optional[str] = None


@dataclass(frozen=True)
class Movement:
    """Card movement joined with its owning card and allocations."""

    id: str
    card_id: str
    date: date
    description: str
    amount: Decimal
    installment_total: Optional[int]
    installment_number: Optional[int]
    tx_key: str
    origin: str
    status: str
    month_ref: str
    note: str
    created_at: datetime
    updated_at: datetime
    card: Optional[Card] = None
    allocations: tuple[Allocation, ...] = ()

    @property
    def is_installment(self) -> bool:
        return bool(self.installment_total and self.installment_total > 1)


@dataclass(frozen=True)
class ImportLine:
    """A well-formed statement line item awaiting reconciliation."""

    date: date
    description: str
    amount: Decimal
    installment_total: Optional[int] = None
    installment_number: Optional[int] = None
    card_final: str = ""
    note: str = ""


@dataclass(frozen=True)
class ReconcileItem:
    """Reconciliation verdict for one import line."""

    line: ImportLine
    tx_key: str
    status: str
    movement_id: Optional[str] = None


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of reconciling a batch of import lines."""

    preview: list[ReconcileItem]
    total: int
    novos: int
    conciliados: int


@dataclass(frozen=True)
class ImportRunResult:
    """Outcome of an import preview or run."""

    card: Card
    total: int
    conciliados: int
    novos: int
    filtered_by_card_final: int
    realigned_month_ref: int
    imported: int
    pending_classification: int
    default_status: str
    default_attribution: str
    dry_run: bool
    preview: list[ReconcileItem] = field(default_factory=list)


@dataclass(frozen=True)
class CardTotals:
    """Per-attribution totals of a bank's movements for one billing month."""

    month: str
    bank: str
    by_attribution: dict[str, Decimal]
    pending: int
    unbucketed: Decimal = Decimal("0")
    installments_in_month: Decimal = Decimal("0")
    open_installments: Decimal = Decimal("0")
    open_installments_projected: Decimal = Decimal("0")


@dataclass(frozen=True)
class LedgerEntry:
    """Entry of the household ledger (owned by the external ledger store)."""

    id: str
    date: date
    type: str
    description: str
    category: str
    amount: Decimal
    attribution: str
    method: str
    installment_total: Optional[int]
    installment_number: Optional[int]
    note: str
    created_at: datetime
    updated_at: datetime
    payer: str


@dataclass(frozen=True)
class LegacyResult:
    """Status reported by the legacy mirror for a single call."""

    status: str
    message: Optional[str] = None
    range: Optional[str] = None

    def __post_init__(self):
        if self.status not in LEGACY_STATUSES:
            raise ValueError(f"Invalid legacy status '{self.status}'")


@dataclass(frozen=True)
class LegacySyncOutcome:
    """Legacy mirror outcome attached to one ledger mutation."""

    entry_id: str
    description: str
    action: str
    status: str
    message: Optional[str] = None
    range: Optional[str] = None


@dataclass(frozen=True)
class SyncResult:
    """Counts and mirror outcomes of a totalizer sync."""

    created: int
    updated: int
    deleted: int
    unchanged: int
    legacy_results: list[LegacySyncOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass(frozen=True)
class TotalizerRunResult:
    """Outcome of generating the totalizer entries of one (bank, month)."""

    month: str
    bank: str
    totals: CardTotals
    planned: list[LedgerEntry]
    sync: SyncResult
