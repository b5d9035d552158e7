"""Auction item lifecycle expressed as an explicit transition table."""

from __future__ import annotations

from enum import Enum

from auctionhouse.errors import IllegalTransition


class AuctionStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ONGOING = "ongoing"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class ItemEvent(str, Enum):
    PUBLISH = "publish"
    BID_ACCEPTED = "bid_accepted"
    CLOSE = "close"
    CANCEL = "cancel"


TRANSITIONS: dict[tuple[AuctionStatus, ItemEvent], AuctionStatus] = {
    (AuctionStatus.DRAFT, ItemEvent.PUBLISH): AuctionStatus.PUBLISHED,
    (AuctionStatus.PUBLISHED, ItemEvent.BID_ACCEPTED): AuctionStatus.ONGOING,
    (AuctionStatus.ONGOING, ItemEvent.BID_ACCEPTED): AuctionStatus.ONGOING,
    (AuctionStatus.ONGOING, ItemEvent.CLOSE): AuctionStatus.CLOSED,
    (AuctionStatus.DRAFT, ItemEvent.CANCEL): AuctionStatus.CANCELLED,
    (AuctionStatus.PUBLISHED, ItemEvent.CANCEL): AuctionStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset({AuctionStatus.CLOSED, AuctionStatus.CANCELLED})


def transition(status: AuctionStatus | str, event: ItemEvent) -> AuctionStatus:
    """Return the status reached by applying ``event`` or raise ``IllegalTransition``."""

    current = AuctionStatus(status)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError as exc:
        raise IllegalTransition(current.value, event.value) from exc


def sources_for(event: ItemEvent) -> frozenset[AuctionStatus]:
    """Statuses from which ``event`` is allowed."""

    return frozenset(source for (source, candidate) in TRANSITIONS if candidate is event)


def accepts_bids(status: AuctionStatus | str) -> bool:
    return (AuctionStatus(status), ItemEvent.BID_ACCEPTED) in TRANSITIONS


def is_editable(status: AuctionStatus | str) -> bool:
    return AuctionStatus(status) is AuctionStatus.DRAFT


def is_deletable(status: AuctionStatus | str) -> bool:
    return AuctionStatus(status) is AuctionStatus.DRAFT


__all__ = [
    "AuctionStatus",
    "ItemEvent",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "accepts_bids",
    "is_deletable",
    "is_editable",
    "sources_for",
    "transition",
]
