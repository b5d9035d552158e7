"""Auction item persistence, including the per-item compare-and-swap."""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from auctionhouse.domain import ImageInput, ItemDraft, Money, ScheduleInput
from auctionhouse.domain.lifecycle import AuctionStatus
from auctionhouse.models import AuctionItem, AuctionSchedule, ItemImage


class ItemRepository:
    """Encapsulate auction item, schedule and image persistence."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def add_item(self, draft: ItemDraft) -> AuctionItem:
        record = AuctionItem(
            lot_code=draft.lot_code,
            item_name=draft.item_name,
            category_id=draft.category_id,
            seller_id=draft.seller_id,
            organizer_id=draft.organizer_id,
            item_type=draft.item_type,
            sub_type=draft.sub_type,
            description=draft.description,
            detailed_description=draft.detailed_description,
            limit_price=draft.limit_price,
            deposit_amount=draft.deposit_amount,
            starting_price=draft.starting_price,
            current_highest_bid=draft.starting_price,
            increment_amount=draft.increment_amount,
            auction_method=draft.auction_method,
            status=AuctionStatus.DRAFT.value,
            bid_count=0,
            view_count=0,
        )
        self._session.add(record)
        self.replace_images(record, draft.images)
        if draft.schedule is not None:
            self.upsert_schedule(record, draft.schedule)
        self._session.flush()
        return record

    def replace_images(self, item: AuctionItem, images: Sequence[ImageInput]) -> None:
        item.images = [
            ItemImage(
                image_url=image.image_url,
                image_type=image.image_type,
                display_order=image.display_order,
                caption=image.caption,
            )
            for image in images
        ]

    def upsert_schedule(self, item: AuctionItem, schedule: ScheduleInput) -> AuctionSchedule:
        existing = item.schedule
        if existing is None:
            existing = AuctionSchedule()
            item.schedule = existing

        existing.auction_start = schedule.auction_start
        existing.auction_end = schedule.auction_end
        existing.registration_start = schedule.registration_start
        existing.registration_end = schedule.registration_end
        existing.deposit_deadline = schedule.deposit_deadline
        existing.announcement_date = schedule.announcement_date
        return existing

    def delete_item(self, item: AuctionItem) -> None:
        self._session.delete(item)
        self._session.flush()

    def increment_view_count(self, item_id: int) -> None:
        self._session.execute(
            update(AuctionItem)
            .where(AuctionItem.item_id == item_id)
            .values(view_count=AuctionItem.view_count + 1)
            .execution_options(synchronize_session=False)
        )

    def compare_and_set(
        self,
        item_id: int,
        *,
        expected_version: int,
        expected_status: str,
        expected_bid_count: int,
        expected_highest: Money,
        values: dict[str, Any],
    ) -> bool:
        """Apply ``values`` only if the row still matches the caller's snapshot.

        Returns ``False`` when another writer changed the item first; the
        caller must re-read and re-validate before trying again.
        """

        statement = (
            update(AuctionItem)
            .where(
                AuctionItem.item_id == item_id,
                AuctionItem.version == expected_version,
                AuctionItem.status == expected_status,
                AuctionItem.bid_count == expected_bid_count,
                AuctionItem.current_highest_bid == expected_highest,
            )
            .values(version=AuctionItem.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(statement)
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Queries

    def get_item(self, item_id: int) -> AuctionItem | None:
        return self._session.get(
            AuctionItem,
            item_id,
            options=[selectinload(AuctionItem.schedule), selectinload(AuctionItem.images)],
            populate_existing=True,
        )

    def get_by_lot_code(self, lot_code: str) -> AuctionItem | None:
        query = select(AuctionItem).where(AuctionItem.lot_code == lot_code)
        return self._session.execute(query).scalars().first()

    def list_items(self, *, status: str | None = None) -> Sequence[AuctionItem]:
        query = select(AuctionItem).options(
            selectinload(AuctionItem.schedule), selectinload(AuctionItem.images)
        )
        if status:
            query = query.where(AuctionItem.status == status)
        query = query.order_by(AuctionItem.created_at.desc(), AuctionItem.item_id.desc())
        return self._session.execute(query).scalars().all()
