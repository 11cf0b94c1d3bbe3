"""Utility for resolving card names to IDs."""

from cardledger.domain.card import CardService
from cardledger.domain.errors import CardNotFoundError, ValidationError


def resolve_card(card_service: CardService, card: str) -> str:
    """Resolve a card name, ID or ID prefix to the card ID.

    Args:
        card_service: CardService instance
        card: Card ID, a unique prefix of it, or the card name

    Returns:
        Card ID

    Raises:
        CardNotFoundError: If no card matches
        ValidationError: If a name or prefix matches more than one card
    """
    card = card.strip()
    if card_service.get_card(card) is not None:
        return card

    cards = card_service.list_cards()
    by_name = [c for c in cards if c.name == card]
    if len(by_name) == 1:
        return by_name[0].id
    if len(by_name) > 1:
        raise ValidationError(f"Card name '{card}' is ambiguous; use the card ID")

    by_prefix = [c for c in cards if c.id.startswith(card)] if len(card) >= 4 else []
    if len(by_prefix) == 1:
        return by_prefix[0].id
    if len(by_prefix) > 1:
        raise ValidationError(f"Card ID prefix '{card}' is ambiguous")

    raise CardNotFoundError(card)
