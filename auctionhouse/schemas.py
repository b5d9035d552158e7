from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .domain import (
    BidderInput,
    CategoryInput,
    ImageInput,
    ItemDraft,
    ItemUpdate,
    Money,
    OrganizerInput,
    ScheduleInput,
    SellerInput,
)


def _money_text(value: Any) -> str | None:
    """Render any accepted money representation in canonical 2-decimal form."""

    if value is None:
        return None
    if isinstance(value, Money):
        return value.to_display_string()
    if isinstance(value, float):
        # repr gives the shortest decimal that round-trips, never the binary expansion
        value = repr(value)
    return Money.parse(value).to_display_string()


def _money(value: str | None) -> Money | None:
    return Money.parse(value) if value is not None else None


# ----------------------------------------------------------------------
# Directory


class SellerCreate(BaseModel):
    seller_name: str = Field(min_length=1, max_length=255)
    seller_type: str = "individual"
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    contact_person: str | None = None

    def to_domain(self) -> SellerInput:
        return SellerInput(**self.model_dump())


class Seller(SellerCreate):
    seller_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class OrganizerCreate(BaseModel):
    organizer_name: str = Field(min_length=1, max_length=255)
    organizer_type: str = "private"
    organizer_code: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    phone: str | None = None
    email: str | None = None

    def to_domain(self) -> OrganizerInput:
        return OrganizerInput(**self.model_dump())


class Organizer(OrganizerCreate):
    organizer_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class CategoryCreate(BaseModel):
    category_name: str = Field(min_length=1, max_length=100)
    parent_category_id: int | None = None
    description: str | None = None

    def to_domain(self) -> CategoryInput:
        return CategoryInput(**self.model_dump())


class Category(CategoryCreate):
    category_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class BidderCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    full_name: str = Field(min_length=1, max_length=255)
    balance: str = "0.00"

    @field_validator("balance", mode="before")
    @classmethod
    def _coerce_balance(cls, value: Any) -> str:
        return _money_text(value) or "0.00"

    def to_domain(self) -> BidderInput:
        return BidderInput(email=self.email, full_name=self.full_name, balance=Money.parse(self.balance))


class Bidder(BaseModel):
    bidder_id: str
    email: str
    full_name: str
    balance: str
    created_at: datetime

    @field_validator("balance", mode="before")
    @classmethod
    def _coerce_balance(cls, value: Any) -> str | None:
        return _money_text(value)

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------------
# Items


class ScheduleIn(BaseModel):
    auction_start: datetime
    auction_end: datetime
    registration_start: datetime | None = None
    registration_end: datetime | None = None
    deposit_deadline: datetime | None = None
    announcement_date: datetime | None = None

    def to_domain(self) -> ScheduleInput:
        return ScheduleInput(**self.model_dump())


class Schedule(ScheduleIn):
    schedule_id: int

    model_config = {"from_attributes": True}


class ImageIn(BaseModel):
    image_url: str = Field(min_length=1, max_length=500)
    image_type: str = "gallery"
    display_order: int = 0
    caption: str | None = None

    def to_domain(self) -> ImageInput:
        return ImageInput(**self.model_dump())


class Image(ImageIn):
    image_id: int

    model_config = {"from_attributes": True}


_ITEM_MONEY_FIELDS = (
    "starting_price",
    "increment_amount",
    "limit_price",
    "deposit_amount",
)


class ItemCreate(BaseModel):
    lot_code: str = Field(min_length=1, max_length=50)
    item_name: str = Field(min_length=1, max_length=255)
    category_id: int
    seller_id: str
    organizer_id: int
    item_type: str
    starting_price: str
    increment_amount: str
    sub_type: str | None = None
    description: str | None = None
    detailed_description: str | None = None
    limit_price: str | None = None
    deposit_amount: str | None = None
    auction_method: str = "open_bidding"
    images: list[ImageIn] = Field(default_factory=list)
    schedule: ScheduleIn | None = None

    @field_validator(*_ITEM_MONEY_FIELDS, mode="before")
    @classmethod
    def _coerce_money(cls, value: Any) -> str | None:
        return _money_text(value)

    def to_domain(self) -> ItemDraft:
        return ItemDraft(
            lot_code=self.lot_code,
            item_name=self.item_name,
            category_id=self.category_id,
            seller_id=self.seller_id,
            organizer_id=self.organizer_id,
            item_type=self.item_type,
            starting_price=Money.parse(self.starting_price),
            increment_amount=Money.parse(self.increment_amount),
            sub_type=self.sub_type,
            description=self.description,
            detailed_description=self.detailed_description,
            limit_price=_money(self.limit_price),
            deposit_amount=_money(self.deposit_amount),
            auction_method=self.auction_method,
            images=[image.to_domain() for image in self.images],
            schedule=self.schedule.to_domain() if self.schedule else None,
        )


class ItemUpdateRequest(BaseModel):
    item_name: str | None = None
    category_id: int | None = None
    item_type: str | None = None
    sub_type: str | None = None
    description: str | None = None
    detailed_description: str | None = None
    limit_price: str | None = None
    deposit_amount: str | None = None
    starting_price: str | None = None
    increment_amount: str | None = None
    auction_method: str | None = None
    images: list[ImageIn] | None = None
    schedule: ScheduleIn | None = None

    @field_validator(*_ITEM_MONEY_FIELDS, mode="before")
    @classmethod
    def _coerce_money(cls, value: Any) -> str | None:
        return _money_text(value)

    def to_domain(self) -> ItemUpdate:
        return ItemUpdate(
            item_name=self.item_name,
            category_id=self.category_id,
            item_type=self.item_type,
            sub_type=self.sub_type,
            description=self.description,
            detailed_description=self.detailed_description,
            limit_price=_money(self.limit_price),
            deposit_amount=_money(self.deposit_amount),
            starting_price=_money(self.starting_price),
            increment_amount=_money(self.increment_amount),
            auction_method=self.auction_method,
            images=[image.to_domain() for image in self.images] if self.images is not None else None,
            schedule=self.schedule.to_domain() if self.schedule else None,
        )


class AuctionItem(BaseModel):
    item_id: int
    lot_code: str
    item_name: str
    category_id: int
    seller_id: str
    organizer_id: int
    item_type: str
    sub_type: str | None = None
    description: str | None = None
    detailed_description: str | None = None
    limit_price: str | None = None
    deposit_amount: str | None = None
    starting_price: str
    current_highest_bid: str
    increment_amount: str
    minimum_next_bid: str | None = None
    auction_method: str
    status: str
    view_count: int
    bid_count: int
    created_at: datetime
    updated_at: datetime
    schedule: Schedule | None = None
    images: list[Image] = Field(default_factory=list)

    @field_validator(
        "limit_price",
        "deposit_amount",
        "starting_price",
        "current_highest_bid",
        "increment_amount",
        "minimum_next_bid",
        mode="before",
    )
    @classmethod
    def _coerce_money(cls, value: Any) -> str | None:
        return _money_text(value)

    model_config = {"from_attributes": True}


class AuctionItemList(BaseModel):
    total: int
    items: list[AuctionItem]


# ----------------------------------------------------------------------
# Bids


class PlaceBidRequest(BaseModel):
    item_id: int
    bidder_id: str = Field(min_length=1)
    amount: str
    request_id: str | None = Field(default=None, max_length=100)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> str | None:
        return _money_text(value)


class Bid(BaseModel):
    bid_id: int
    item_id: int
    bidder_id: str
    amount: str
    status: str
    is_highest: bool
    bid_time: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> str | None:
        return _money_text(value)

    model_config = {"from_attributes": True}


class BidList(BaseModel):
    total: int
    items: list[Bid]


class ErrorResponse(BaseModel):
    error: str
    detail: str
