"""Auction item lifecycle: listing, editing, publishing and administrative close."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Sequence

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from auctionhouse import schemas
from auctionhouse.core.clock import ensure_utc
from auctionhouse.domain import ImageInput, ItemDraft, ItemUpdate, Money, ScheduleInput
from auctionhouse.domain.lifecycle import (
    AuctionStatus,
    ItemEvent,
    is_deletable,
    is_editable,
    transition,
)
from auctionhouse.errors import (
    ItemNotDeletable,
    ItemNotEditable,
    ItemNotFound,
    SchedulePrerequisiteMissing,
    ValidationError,
)
from auctionhouse.models import AuctionItem, AuctionMethod, ImageType, ItemType
from auctionhouse.repositories import BidRepository, ItemRepository

from .directory_service import DirectoryService, _require_choice, _require_text


def _utc_or_none(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def _normalize_schedule(schedule: ScheduleInput) -> ScheduleInput:
    normalized = ScheduleInput(
        auction_start=ensure_utc(schedule.auction_start),
        auction_end=ensure_utc(schedule.auction_end),
        registration_start=_utc_or_none(schedule.registration_start),
        registration_end=_utc_or_none(schedule.registration_end),
        deposit_deadline=_utc_or_none(schedule.deposit_deadline),
        announcement_date=_utc_or_none(schedule.announcement_date),
    )
    if normalized.auction_start >= normalized.auction_end:
        raise ValidationError("auction_start must be before auction_end")
    if (
        normalized.registration_start
        and normalized.registration_end
        and normalized.registration_start > normalized.registration_end
    ):
        raise ValidationError("registration_start must not be after registration_end")
    return normalized


def _validate_images(images: Sequence[ImageInput]) -> None:
    for image in images:
        _require_text(image.image_url, "image_url")
        _require_choice(image.image_type, ImageType, "image_type")


def _validate_pricing(starting_price: Money, increment_amount: Money) -> None:
    if not starting_price:
        raise ValidationError("starting_price must be greater than zero")
    if not increment_amount:
        raise ValidationError("increment_amount must be greater than zero")


class ItemService:
    """Seller- and organizer-side operations on auction items."""

    def __init__(self, session: Session):
        self._session = session
        self._items = ItemRepository(session)
        self._bids = BidRepository(session)
        self._directory = DirectoryService(session)

    # ------------------------------------------------------------------
    # Creation and lookup

    def create_item(self, draft: ItemDraft) -> schemas.AuctionItem:
        lot_code = _require_text(draft.lot_code, "lot_code")
        item_name = _require_text(draft.item_name, "item_name")
        _require_choice(draft.item_type, ItemType, "item_type")
        _require_choice(draft.auction_method, AuctionMethod, "auction_method")
        _validate_pricing(draft.starting_price, draft.increment_amount)
        _validate_images(draft.images)
        schedule = _normalize_schedule(draft.schedule) if draft.schedule else None

        self._directory.ensure_item_references(
            category_id=draft.category_id,
            seller_id=draft.seller_id,
            organizer_id=draft.organizer_id,
        )
        if self._items.get_by_lot_code(lot_code):
            raise ValidationError(f"Lot code {lot_code} is already in use")

        draft = replace(draft, lot_code=lot_code, item_name=item_name, schedule=schedule)
        try:
            record = self._items.add_item(draft)
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise ValidationError(f"Lot code {lot_code} is already in use") from exc

        logger.info("Created auction item {} lot={}", record.item_id, record.lot_code)
        return self.require_item(record.item_id)

    def get_item(self, item_id: int, *, count_view: bool = False) -> schemas.AuctionItem | None:
        item = self._items.get_item(item_id)
        if item is None:
            return None
        if count_view:
            self._items.increment_view_count(item_id)
            self._session.commit()
            item = self._load(item_id)
        return schemas.AuctionItem.model_validate(item)

    def require_item(self, item_id: int) -> schemas.AuctionItem:
        return schemas.AuctionItem.model_validate(self._load(item_id))

    def list_items(self, *, status: str | None = None) -> schemas.AuctionItemList:
        if status is not None:
            _require_choice(status, AuctionStatus, "status")
        records = self._items.list_items(status=status)
        items = [schemas.AuctionItem.model_validate(record) for record in records]
        return schemas.AuctionItemList(total=len(items), items=items)

    def _load(self, item_id: int) -> AuctionItem:
        item = self._items.get_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    # ------------------------------------------------------------------
    # Draft editing

    def update_item(self, item_id: int, changes: ItemUpdate) -> schemas.AuctionItem:
        item = self._load(item_id)
        if not is_editable(item.status):
            raise ItemNotEditable(
                f"Auction item {item_id} is {item.status}; only draft items can be edited"
            )

        starting_price = (
            changes.starting_price if changes.starting_price is not None else item.starting_price
        )
        increment_amount = (
            changes.increment_amount if changes.increment_amount is not None else item.increment_amount
        )
        _validate_pricing(starting_price, increment_amount)
        if changes.item_type is not None:
            _require_choice(changes.item_type, ItemType, "item_type")
        if changes.auction_method is not None:
            _require_choice(changes.auction_method, AuctionMethod, "auction_method")
        if changes.images is not None:
            _validate_images(changes.images)
        schedule = _normalize_schedule(changes.schedule) if changes.schedule else None
        if changes.category_id is not None:
            self._directory.ensure_item_references(category_id=changes.category_id)

        if changes.item_name is not None:
            item.item_name = _require_text(changes.item_name, "item_name")
        for field in (
            "category_id",
            "item_type",
            "auction_method",
            "sub_type",
            "description",
            "detailed_description",
            "limit_price",
            "deposit_amount",
        ):
            value = getattr(changes, field)
            if value is not None:
                setattr(item, field, value)
        item.starting_price = starting_price
        # Drafts carry no bids, so the displayed price tracks the starting price.
        item.current_highest_bid = starting_price
        item.increment_amount = increment_amount
        if changes.images is not None:
            self._items.replace_images(item, changes.images)
        if schedule is not None:
            self._items.upsert_schedule(item, schedule)

        try:
            self._session.commit()
        except StaleDataError as exc:
            self._session.rollback()
            raise ItemNotEditable(f"Auction item {item_id} changed while it was being edited") from exc

        logger.info("Updated draft auction item {}", item_id)
        return self.require_item(item_id)

    def set_schedule(self, item_id: int, schedule: ScheduleInput) -> schemas.AuctionItem:
        return self.update_item(item_id, ItemUpdate(schedule=schedule))

    def delete_item(self, item_id: int) -> None:
        item = self._load(item_id)
        if not is_deletable(item.status):
            raise ItemNotDeletable(
                f"Auction item {item_id} is {item.status}; only draft items can be deleted"
            )
        try:
            self._items.delete_item(item)
            self._session.commit()
        except StaleDataError as exc:
            self._session.rollback()
            raise ItemNotDeletable(f"Auction item {item_id} changed while it was being deleted") from exc
        logger.info("Deleted draft auction item {}", item_id)

    # ------------------------------------------------------------------
    # Lifecycle transitions

    def publish_item(self, item_id: int) -> schemas.AuctionItem:
        item = self._load(item_id)
        if not is_editable(item.status):
            raise ItemNotEditable(
                f"Auction item {item_id} is {item.status}; only draft items can be published"
            )
        if item.schedule is None:
            raise SchedulePrerequisiteMissing(item_id)
        return self._apply_transition(item, ItemEvent.PUBLISH)

    def cancel_item(self, item_id: int) -> schemas.AuctionItem:
        return self._apply_transition(self._load(item_id), ItemEvent.CANCEL)

    def close_item(self, item_id: int) -> schemas.AuctionItem:
        """Close an ongoing auction and settle its ledger into won/lost bids."""

        return self._apply_transition(self._load(item_id), ItemEvent.CLOSE)

    def _apply_transition(self, item: AuctionItem, event: ItemEvent) -> schemas.AuctionItem:
        item_id = item.item_id
        target = transition(item.status, event)
        swapped = self._items.compare_and_set(
            item_id,
            expected_version=item.version,
            expected_status=item.status,
            expected_bid_count=item.bid_count,
            expected_highest=item.current_highest_bid,
            values={"status": target.value},
        )
        if not swapped:
            self._session.rollback()
            raise ItemNotEditable(f"Auction item {item_id} changed concurrently; reload and retry")

        if event is ItemEvent.CLOSE:
            winner = self._bids.winning_bid(item_id)
            won, lost = self._bids.settle(item_id)
            if winner is None:
                logger.info("Closed auction item {} without bids", item_id)
            else:
                logger.info(
                    "Settled auction item {} winner={} amount={} won={} lost={}",
                    item_id,
                    winner.bidder_id,
                    winner.amount.to_display_string(),
                    won,
                    lost,
                )

        self._session.commit()
        logger.info("Auction item {} moved to {} via {}", item_id, target.value, event.value)
        return self.require_item(item_id)
