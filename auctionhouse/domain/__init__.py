"""Domain types: money, item lifecycle, and service inputs."""

from .lifecycle import AuctionStatus, ItemEvent, accepts_bids, transition
from .models import (
    BidderInput,
    BidProvenance,
    CategoryInput,
    ImageInput,
    ItemDraft,
    ItemUpdate,
    OrganizerInput,
    ScheduleInput,
    SellerInput,
)
from .money import Money

__all__ = [
    "AuctionStatus",
    "BidderInput",
    "BidProvenance",
    "CategoryInput",
    "ImageInput",
    "ItemDraft",
    "ItemEvent",
    "ItemUpdate",
    "Money",
    "OrganizerInput",
    "ScheduleInput",
    "SellerInput",
    "accepts_bids",
    "transition",
]
