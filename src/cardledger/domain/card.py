"""Card domain service."""

import logging
from typing import Optional

from cardledger.database.base import Database
from cardledger.domain.entities import ATTRIBUTIONS, BANKS, HOLDERS, Card as CardEntity
from cardledger.domain.errors import CardNotFoundError, ValidationError, invalid_choice

logger = logging.getLogger(__name__)


def default_attribution_for_card(card: Optional[CardEntity]) -> str:
    """Attribution given to movements imported for a card before classification.

    Cards held by DEA or JULIA are shared by default, whatever their configured
    attribution says; an unknown card is shared too.
    """
    if card is None:
        return "AMBOS"
    if card.holder in ("JULIA", "DEA"):
        return "AMBOS"
    return card.default_attribution


class CardService:
    """Service for managing credit cards."""

    def __init__(self, db: Database):
        """Initialize card service.

        Args:
            db: Database instance
        """
        self.db = db

    def _validate(self, name: str, bank: str, holder: str, default_attribution: str) -> None:
        if not name.strip():
            raise ValidationError("Card name cannot be empty")
        if bank not in BANKS:
            raise ValidationError(invalid_choice("bank", bank, BANKS))
        if holder not in HOLDERS:
            raise ValidationError(invalid_choice("holder", holder, HOLDERS))
        if default_attribution not in ATTRIBUTIONS:
            raise ValidationError(invalid_choice("attribution", default_attribution, ATTRIBUTIONS))

    def save_card(
        self,
        name: str,
        bank: str,
        holder: str,
        card_final: str = "",
        default_attribution: str = "AMBOS",
        active: bool = True,
        card_id: Optional[str] = None,
    ) -> CardEntity:
        """Create a card, or replace an existing one when card_id is given.

        Raises:
            ValidationError: If a field is outside its allowed values
            RowNotFoundError: If card_id is given but does not exist
        """
        self._validate(name, bank, holder, default_attribution)
        fields = dict(
            name=name.strip(),
            bank=bank,
            holder=holder,
            card_final=(card_final or "").strip(),
            default_attribution=default_attribution,
            active=active,
        )
        if card_id is None:
            card = self.db.create_card(**fields)
            logger.info("Created card %s (%s)", card.name, card.id)
            return card
        return self.db.update_card(card_id=card_id, **fields)

    def get_card(self, card_id: str) -> Optional[CardEntity]:
        return self.db.get_card(card_id)

    def require_card(self, card_id: str) -> CardEntity:
        """Get a card or raise CardNotFoundError."""
        card = self.db.get_card(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return card

    def list_cards(self) -> list[CardEntity]:
        return self.db.list_cards()

    def delete_card(self, card_id: str) -> None:
        """Delete a card together with its movements and allocations.

        Raises:
            RowNotFoundError: If the card does not exist
        """
        self.db.delete_card(card_id)
        logger.info("Deleted card %s", card_id)
