from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .db import Base
from .domain.lifecycle import AuctionStatus
from .domain.money import MAX_MINOR_UNITS, Money


class SellerType(str, Enum):
    BANK = "bank"
    GOVERNMENT = "government"
    COMPANY = "company"
    INDIVIDUAL = "individual"


class OrganizerType(str, Enum):
    KPKNL = "KPKNL"
    BANK = "bank"
    PRIVATE = "private"


class ItemType(str, Enum):
    MOVABLE = "movable"
    IMMOVABLE = "immovable"


class AuctionMethod(str, Enum):
    OPEN_BIDDING = "open_bidding"
    CLOSED_BIDDING = "closed_bidding"
    TENDER = "tender"


class ImageType(str, Enum):
    MAIN = "main"
    GALLERY = "gallery"
    DOCUMENT = "document"


class BidStatus(str, Enum):
    ACTIVE = "active"
    OUTBID = "outbid"
    WINNING = "winning"
    WON = "won"
    LOST = "lost"
    CANCELLED = "cancelled"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    return str(uuid4())


class MoneyType(TypeDecorator):
    """Persist ``Money`` as an integer count of minor units."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, Money):
            return value.minor_units
        return Money.parse(value).minor_units

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Money.from_minor_units(int(value))


class Seller(Base):
    __tablename__ = "sellers"

    seller_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    seller_name: Mapped[str] = mapped_column(String(255), nullable=False)
    seller_type: Mapped[str] = mapped_column(String(20), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Organizer(Base):
    __tablename__ = "organizers"

    organizer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organizer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    organizer_code: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    organizer_type: Mapped[str] = mapped_column(String(20), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    province: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ItemCategory(Base):
    __tablename__ = "item_categories"

    category_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    parent_category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("item_categories.category_id"), nullable=True, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    parent_category: Mapped[ItemCategory | None] = relationship(
        "ItemCategory", remote_side="ItemCategory.category_id", back_populates="sub_categories"
    )
    sub_categories: Mapped[list[ItemCategory]] = relationship(
        "ItemCategory", back_populates="parent_category"
    )


class Bidder(Base):
    __tablename__ = "bidders"

    bidder_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    balance: Mapped[Money] = mapped_column(MoneyType, nullable=False, default=Money.zero)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    bids: Mapped[list["Bid"]] = relationship("Bid", back_populates="bidder")


class AuctionItem(Base):
    __tablename__ = "auction_items"

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lot_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("item_categories.category_id"), nullable=False, index=True
    )
    seller_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sellers.seller_id"), nullable=False, index=True
    )
    organizer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizers.organizer_id"), nullable=False, index=True
    )
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    sub_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    detailed_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    limit_price: Mapped[Money | None] = mapped_column(MoneyType, nullable=True)
    deposit_amount: Mapped[Money | None] = mapped_column(MoneyType, nullable=True)
    starting_price: Mapped[Money] = mapped_column(MoneyType, nullable=False)
    current_highest_bid: Mapped[Money] = mapped_column(MoneyType, nullable=False)
    increment_amount: Mapped[Money] = mapped_column(MoneyType, nullable=False)
    auction_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuctionMethod.OPEN_BIDDING.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuctionStatus.DRAFT.value, index=True
    )
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    category: Mapped[ItemCategory] = relationship("ItemCategory")
    seller: Mapped[Seller] = relationship("Seller")
    organizer: Mapped[Organizer] = relationship("Organizer")
    images: Mapped[list["ItemImage"]] = relationship(
        "ItemImage",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemImage.display_order",
    )
    schedule: Mapped["AuctionSchedule | None"] = relationship(
        "AuctionSchedule", back_populates="item", cascade="all, delete-orphan", uselist=False
    )
    bids: Mapped[list["Bid"]] = relationship("Bid", back_populates="item")

    __mapper_args__ = {"version_id_col": version}

    @property
    def minimum_next_bid(self) -> Money | None:
        """Lowest amount the next bid may carry; equality is accepted.

        ``None`` once the increment would push past the largest storable amount.
        """

        if self.bid_count == 0:
            return self.starting_price
        units = self.current_highest_bid.minor_units + self.increment_amount.minor_units
        if units > MAX_MINOR_UNITS:
            return None
        return Money.from_minor_units(units)


class ItemImage(Base):
    __tablename__ = "item_images"

    image_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("auction_items.item_id"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    image_type: Mapped[str] = mapped_column(String(20), nullable=False, default=ImageType.GALLERY.value)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    item: Mapped[AuctionItem] = relationship("AuctionItem", back_populates="images")


class AuctionSchedule(Base):
    __tablename__ = "auction_schedules"

    schedule_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("auction_items.item_id"), nullable=False, unique=True
    )
    registration_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    registration_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deposit_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    auction_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    auction_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    announcement_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    item: Mapped[AuctionItem] = relationship("AuctionItem", back_populates="schedule")


class Bid(Base):
    __tablename__ = "bids"

    bid_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("auction_items.item_id"), nullable=False, index=True
    )
    bidder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bidders.bidder_id"), nullable=False, index=True
    )
    amount: Mapped[Money] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BidStatus.ACTIVE.value, index=True
    )
    is_highest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bid_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    item: Mapped[AuctionItem] = relationship("AuctionItem", back_populates="bids")
    bidder: Mapped[Bidder] = relationship("Bidder", back_populates="bids")

    __table_args__ = (
        UniqueConstraint("bidder_id", "request_id", name="uq_bid_request_scope"),
    )
