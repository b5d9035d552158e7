"""Reference data: sellers, organizers, categories and bidders."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from auctionhouse.domain import BidderInput, CategoryInput, OrganizerInput, SellerInput
from auctionhouse.models import Bidder, ItemCategory, Organizer, Seller


class DirectoryRepository:
    """Single-row lookups and inserts for directory entities."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def create_seller(self, payload: SellerInput) -> Seller:
        record = Seller(
            seller_name=payload.seller_name,
            seller_type=payload.seller_type,
            address=payload.address,
            phone=payload.phone,
            email=payload.email,
            contact_person=payload.contact_person,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def create_organizer(self, payload: OrganizerInput) -> Organizer:
        record = Organizer(
            organizer_name=payload.organizer_name,
            organizer_code=payload.organizer_code,
            organizer_type=payload.organizer_type,
            address=payload.address,
            city=payload.city,
            province=payload.province,
            phone=payload.phone,
            email=payload.email,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def create_category(self, payload: CategoryInput) -> ItemCategory:
        record = ItemCategory(
            category_name=payload.category_name,
            parent_category_id=payload.parent_category_id,
            description=payload.description,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def create_bidder(self, payload: BidderInput) -> Bidder:
        record = Bidder(
            email=payload.email,
            full_name=payload.full_name,
            balance=payload.balance,
        )
        self._session.add(record)
        self._session.flush()
        return record

    # ------------------------------------------------------------------
    # Queries

    def get_seller(self, seller_id: str) -> Seller | None:
        return self._session.get(Seller, seller_id)

    def get_organizer(self, organizer_id: int) -> Organizer | None:
        return self._session.get(Organizer, organizer_id)

    def get_organizer_by_code(self, organizer_code: str) -> Organizer | None:
        query = select(Organizer).where(Organizer.organizer_code == organizer_code)
        return self._session.execute(query).scalars().first()

    def get_category(self, category_id: int) -> ItemCategory | None:
        return self._session.get(ItemCategory, category_id)

    def get_bidder(self, bidder_id: str) -> Bidder | None:
        return self._session.get(Bidder, bidder_id)

    def get_bidder_by_email(self, email: str) -> Bidder | None:
        query = select(Bidder).where(Bidder.email == email)
        return self._session.execute(query).scalars().first()

    def list_sellers(self) -> Sequence[Seller]:
        query = select(Seller).order_by(Seller.seller_name, Seller.seller_id)
        return self._session.execute(query).scalars().all()

    def list_organizers(self) -> Sequence[Organizer]:
        query = select(Organizer).order_by(Organizer.organizer_id)
        return self._session.execute(query).scalars().all()

    def list_categories(self, *, roots_only: bool = False) -> Sequence[ItemCategory]:
        query = select(ItemCategory).options(selectinload(ItemCategory.sub_categories))
        if roots_only:
            query = query.where(ItemCategory.parent_category_id.is_(None))
        query = query.order_by(ItemCategory.category_id)
        return self._session.execute(query).scalars().all()

    def list_bidders(self) -> Sequence[Bidder]:
        query = select(Bidder).order_by(Bidder.created_at, Bidder.bidder_id)
        return self._session.execute(query).scalars().all()
