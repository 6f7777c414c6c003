"""Map a notification category (and body) to a settlement event type."""

from __future__ import annotations

from dataclasses import dataclass

from .models import Category, EventType, Party, Platform

# Indifi release notices name the receiving entity; funds moved to Indifi's
# own capital arm are booked differently from a release to the bank account.
OWN_ENTITY_PHRASE = "released to indifi capital"


@dataclass(frozen=True)
class Classification:
    event_type: EventType
    platform: Platform
    party: Party


_AMAZON = Classification(EventType.AMAZON_SETTLEMENT, Platform.AMAZON, Party.AMAZON)
_VIRTUAL_RECEIPT = Classification(EventType.INDIFI_VIRTUAL_RECEIPT, Platform.INDIFI, Party.INDIFI)
_RELEASE_TO_INDIFI = Classification(EventType.INDIFI_RELEASE_TO_INDIFI, Platform.INDIFI, Party.INDIFI)
_RELEASE_TO_BANK = Classification(EventType.INDIFI_RELEASE_TO_BANK, Platform.INDIFI, Party.INDIFI)


def classify(category: Category, body_text: str | None) -> Classification:
    if category is Category.AMAZON_SETTLEMENT:
        return _AMAZON
    if category is Category.INDIFI_VIRTUAL_RECEIPT:
        return _VIRTUAL_RECEIPT
    if category is Category.INDIFI_RELEASE:
        if body_text and OWN_ENTITY_PHRASE in body_text.lower():
            return _RELEASE_TO_INDIFI
        return _RELEASE_TO_BANK
    raise ValueError(f"unknown category: {category!r}")
