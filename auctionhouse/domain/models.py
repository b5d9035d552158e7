"""Typed inputs passed from the API and scripts into the services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .money import Money


@dataclass(slots=True)
class SellerInput:
    seller_name: str
    seller_type: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    contact_person: str | None = None


@dataclass(slots=True)
class OrganizerInput:
    organizer_name: str
    organizer_type: str
    organizer_code: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    phone: str | None = None
    email: str | None = None


@dataclass(slots=True)
class CategoryInput:
    category_name: str
    parent_category_id: int | None = None
    description: str | None = None


@dataclass(slots=True)
class BidderInput:
    email: str
    full_name: str
    balance: Money = field(default_factory=Money.zero)


@dataclass(slots=True)
class ScheduleInput:
    """Bidding window plus the optional milestones surrounding it."""

    auction_start: datetime
    auction_end: datetime
    registration_start: datetime | None = None
    registration_end: datetime | None = None
    deposit_deadline: datetime | None = None
    announcement_date: datetime | None = None


@dataclass(slots=True)
class ImageInput:
    image_url: str
    image_type: str = "gallery"
    display_order: int = 0
    caption: str | None = None


@dataclass(slots=True)
class ItemDraft:
    """Everything a seller supplies when listing a new lot."""

    lot_code: str
    item_name: str
    category_id: int
    seller_id: str
    organizer_id: int
    item_type: str
    starting_price: Money
    increment_amount: Money
    sub_type: str | None = None
    description: str | None = None
    detailed_description: str | None = None
    limit_price: Money | None = None
    deposit_amount: Money | None = None
    auction_method: str = "open_bidding"
    images: list[ImageInput] = field(default_factory=list)
    schedule: ScheduleInput | None = None


@dataclass(slots=True)
class ItemUpdate:
    """Partial update; ``None`` leaves the stored value untouched."""

    item_name: str | None = None
    category_id: int | None = None
    item_type: str | None = None
    sub_type: str | None = None
    description: str | None = None
    detailed_description: str | None = None
    limit_price: Money | None = None
    deposit_amount: Money | None = None
    starting_price: Money | None = None
    increment_amount: Money | None = None
    auction_method: str | None = None
    images: list[ImageInput] | None = None
    schedule: ScheduleInput | None = None


@dataclass(slots=True)
class BidProvenance:
    """Where a bid came from; kept for audit only."""

    ip_address: str | None = None
    user_agent: str | None = None
