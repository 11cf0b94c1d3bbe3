"""Tests for card and movement persistence."""

from datetime import date
from decimal import Decimal

import pytest

from cardledger.database import models
from cardledger.domain import entities
from cardledger.domain.entities import AllocationInput
from cardledger.domain.errors import CardNotFoundError, RowNotFoundError, ValidationError
from cardledger.domain.fingerprint import build_tx_key


def allocations(*pairs):
    return [AllocationInput(attribution=tag, amount=Decimal(str(value))) for tag, value in pairs]


def count_allocations(temp_db):
    session = temp_db.session_factory()
    try:
        return session.query(models.Allocation).count()
    finally:
        session.close()


class TestCards:
    """Tests for card persistence and validation."""

    def test_save_card_returns_domain_model(self, card_service):
        card = card_service.save_card(name="BB Dea", bank="BB", holder="DEA", card_final=" 9876 ")

        assert isinstance(card, entities.Card)
        assert card.name == "BB Dea"
        assert card.card_final == "9876"
        assert card.default_attribution == "AMBOS"
        assert card.active is True
        assert card_service.get_card(card.id) == card

    def test_save_card_rejects_unknown_bank(self, card_service):
        with pytest.raises(ValidationError) as excinfo:
            card_service.save_card(name="Nubank", bank="NU", holder="WALKER")
        assert "Invalid bank 'NU'" in str(excinfo.value)

    def test_update_card(self, card_service, sample_card):
        updated = card_service.save_card(
            name="C6 Black",
            bank="C6",
            holder="WALKER",
            default_attribution="WALKER",
            active=False,
            card_id=sample_card.id,
        )

        assert updated.id == sample_card.id
        assert updated.name == "C6 Black"
        assert updated.active is False
        assert updated.created_at == sample_card.created_at

    def test_update_missing_card(self, card_service):
        with pytest.raises(RowNotFoundError):
            card_service.save_card(name="X", bank="C6", holder="WALKER", card_id="missing")

    def test_require_card(self, card_service):
        with pytest.raises(CardNotFoundError) as excinfo:
            card_service.require_card("missing")
        assert excinfo.value.card_id == "missing"

    def test_list_cards_ordered_by_name(self, card_service):
        card_service.save_card(name="Zeta", bank="BB", holder="DEA")
        card_service.save_card(name="Alfa", bank="C6", holder="WALKER")

        assert [card.name for card in card_service.list_cards()] == ["Alfa", "Zeta"]

    def test_delete_card_cascades(self, temp_db, card_service, movement_service, sample_card):
        movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="Mercado",
            amount=Decimal("100"),
            allocations=allocations(("AMBOS", 100)),
        )

        card_service.delete_card(sample_card.id)

        assert card_service.get_card(sample_card.id) is None
        assert movement_service.list_movements() == []
        assert count_allocations(temp_db) == 0


class TestMovements:
    """Tests for movement persistence."""

    def test_create_movement(self, movement_service, sample_card):
        movement = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="  Mercado Central ",
            amount=Decimal("100.5"),
            allocations=allocations(("WALKER", "60.50"), ("DEA", 40)),
        )

        assert movement.description == "Mercado Central"
        assert movement.amount == Decimal("100.50")
        assert movement.status == "pendente"
        assert movement.origin == "manual"
        assert movement.month_ref == "2026-02"
        assert movement.tx_key == build_tx_key(sample_card.id, date(2026, 2, 10), "Mercado Central", Decimal("100.50"))
        assert movement.card == sample_card
        assert sorted(a.attribution for a in movement.allocations) == ["DEA", "WALKER"]
        assert sum(a.amount for a in movement.allocations) == Decimal("100.50")

        fetched = movement_service.get_movement(movement.id)
        assert fetched == movement

    def test_create_movement_unknown_card(self, movement_service):
        with pytest.raises(CardNotFoundError):
            movement_service.save_movement(
                card_id="missing",
                date=date(2026, 2, 10),
                description="Mercado",
                amount=Decimal("10"),
                allocations=allocations(("AMBOS", 10)),
            )

    def test_create_movement_invalid_attribution(self, movement_service, sample_card):
        with pytest.raises(ValidationError):
            movement_service.save_movement(
                card_id=sample_card.id,
                date=date(2026, 2, 10),
                description="Mercado",
                amount=Decimal("10"),
                allocations=allocations(("JULIA", 10)),
            )

    def test_create_movement_invalid_month(self, movement_service, sample_card):
        with pytest.raises(ValueError):
            movement_service.save_movement(
                card_id=sample_card.id,
                date=date(2026, 2, 10),
                description="Mercado",
                amount=Decimal("10"),
                allocations=allocations(("AMBOS", 10)),
                month_ref="2026-2",
            )

    def test_installment_number_cannot_exceed_total(self, movement_service, sample_card):
        with pytest.raises(ValidationError):
            movement_service.save_movement(
                card_id=sample_card.id,
                date=date(2026, 2, 10),
                description="Sofa",
                amount=Decimal("300"),
                allocations=allocations(("AMBOS", 300)),
                installment_total=3,
                installment_number=4,
            )

    def test_update_replaces_allocation_set(self, temp_db, movement_service, sample_card):
        movement = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="Mercado",
            amount=Decimal("100"),
            allocations=allocations(("WALKER", 50), ("DEA", 50)),
        )

        updated = movement_service.save_movement(
            card_id=sample_card.id,
            date=movement.date,
            description=movement.description,
            amount=movement.amount,
            allocations=allocations(("AMBOS", 100)),
            movement_id=movement.id,
        )

        assert [(a.attribution, a.amount) for a in updated.allocations] == [("AMBOS", Decimal("100.00"))]
        assert count_allocations(temp_db) == 1
        assert updated.created_at == movement.created_at
        assert updated.month_ref == movement.month_ref

    def test_update_keeps_reused_allocation_ids(self, movement_service, sample_card):
        movement = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="Mercado",
            amount=Decimal("100"),
            allocations=allocations(("AMBOS", 100)),
        )
        allocation_id = movement.allocations[0].id

        updated = movement_service.save_movement(
            card_id=sample_card.id,
            date=movement.date,
            description=movement.description,
            amount=movement.amount,
            allocations=[AllocationInput(attribution="WALKER", amount=Decimal("100"), id=allocation_id)],
            movement_id=movement.id,
        )

        assert [a.id for a in updated.allocations] == [allocation_id]
        assert updated.allocations[0].attribution == "WALKER"

    def test_update_missing_movement(self, temp_db, movement_service, sample_card):
        with pytest.raises(RowNotFoundError) as excinfo:
            movement_service.save_movement(
                card_id=sample_card.id,
                date=date(2026, 2, 10),
                description="Mercado",
                amount=Decimal("10"),
                allocations=[],
                movement_id="missing",
            )
        assert excinfo.value.entity == "movement"

        with pytest.raises(RowNotFoundError):
            temp_db.update_movement(
                movement_id="missing",
                card_id=sample_card.id,
                date=date(2026, 2, 10),
                description="Mercado",
                amount=Decimal("10"),
                tx_key="k",
                origin="manual",
                status="pendente",
                month_ref="2026-02",
                allocations=[],
            )

    def test_failed_update_leaves_movement_untouched(self, movement_service, sample_card):
        movement = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="Mercado",
            amount=Decimal("100"),
            allocations=allocations(("AMBOS", 100)),
        )

        with pytest.raises(CardNotFoundError):
            movement_service.save_movement(
                card_id="missing",
                date=movement.date,
                description="Changed",
                amount=movement.amount,
                allocations=allocations(("DEA", 100)),
                movement_id=movement.id,
            )

        assert movement_service.get_movement(movement.id) == movement

    def test_classify(self, movement_service, sample_card):
        movement = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="Mercado",
            amount=Decimal("100"),
            allocations=allocations(("AMBOS", 100)),
        )

        classified = movement_service.classify(movement.id, allocations(("WALKER", 70), ("DEA", 30)))

        assert classified.status == "conciliado"
        assert classified.tx_key == movement.tx_key
        assert sorted((a.attribution, a.amount) for a in classified.allocations) == [
            ("DEA", Decimal("30.00")),
            ("WALKER", Decimal("70.00")),
        ]

    def test_classify_requires_allocations(self, movement_service, sample_card):
        with pytest.raises(ValidationError):
            movement_service.classify("any", [])

    def test_delete_movement(self, temp_db, movement_service, sample_card):
        movement = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="Mercado",
            amount=Decimal("100"),
            allocations=allocations(("AMBOS", 100)),
        )

        deleted = movement_service.delete_movement(movement.id)

        assert deleted == movement
        assert movement_service.get_movement(movement.id) is None
        assert count_allocations(temp_db) == 0
        with pytest.raises(RowNotFoundError):
            movement_service.delete_movement(movement.id)

    def test_list_movements_order_and_filters(self, movement_service, sample_card, card_service):
        other_card = card_service.save_card(name="BB Dea", bank="BB", holder="DEA")
        for day, card, month in [
            (date(2026, 2, 1), sample_card, "2026-02"),
            (date(2026, 2, 20), sample_card, "2026-02"),
            (date(2026, 2, 10), other_card, "2026-03"),
        ]:
            movement_service.save_movement(
                card_id=card.id,
                date=day,
                description=f"Compra {day.day}",
                amount=Decimal("10"),
                allocations=allocations(("AMBOS", 10)),
                month_ref=month,
            )

        assert [m.date.day for m in movement_service.list_movements()] == [20, 10, 1]
        assert [m.date.day for m in movement_service.list_movements(month_ref="2026-02")] == [20, 1]
        assert [m.date.day for m in movement_service.list_movements(card_id=other_card.id)] == [10]
        assert movement_service.list_movements(status="conciliado") == []
        with pytest.raises(ValidationError):
            movement_service.list_movements(status="unknown")

    def test_realign_month_ref_only_moves_statement_movements(self, movement_service, sample_card):
        imported = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 10),
            description="Mercado",
            amount=Decimal("100"),
            allocations=allocations(("AMBOS", 100)),
            origin="fatura",
        )
        manual = movement_service.save_movement(
            card_id=sample_card.id,
            date=date(2026, 2, 11),
            description="Padaria",
            amount=Decimal("10"),
            allocations=allocations(("AMBOS", 10)),
        )

        changed = movement_service.realign_month_ref([imported.id, manual.id, imported.id], "2026-03")

        assert changed == 1
        assert movement_service.get_movement(imported.id).month_ref == "2026-03"
        assert movement_service.get_movement(manual.id).month_ref == "2026-02"
        assert movement_service.realign_month_ref([imported.id], "2026-03") == 0
