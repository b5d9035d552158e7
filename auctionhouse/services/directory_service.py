"""Directory reference data and the existence checks items depend on."""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from auctionhouse import schemas
from auctionhouse.domain import BidderInput, CategoryInput, OrganizerInput, SellerInput
from auctionhouse.errors import ReferenceNotFound, ValidationError
from auctionhouse.models import OrganizerType, SellerType
from auctionhouse.repositories import DirectoryRepository


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def _require_choice(value: str, choices: type, field: str) -> str:
    allowed = {member.value for member in choices}
    if value not in allowed:
        raise ValidationError(f"{field} must be one of {sorted(allowed)}")
    return value


def _present(schema, record):
    return schema.model_validate(record) if record is not None else None


class DirectoryService:
    """Create and look up sellers, organizers, categories and bidders."""

    def __init__(self, session: Session):
        self._session = session
        self._repo = DirectoryRepository(session)

    # ------------------------------------------------------------------
    # Sellers

    def create_seller(self, payload: SellerInput) -> schemas.Seller:
        payload.seller_name = _require_text(payload.seller_name, "seller_name")
        _require_choice(payload.seller_type, SellerType, "seller_type")
        record = self._repo.create_seller(payload)
        self._session.commit()
        logger.info("Created seller {} ({})", record.seller_id, record.seller_name)
        return schemas.Seller.model_validate(record)

    def get_seller(self, seller_id: str) -> schemas.Seller | None:
        return _present(schemas.Seller, self._repo.get_seller(seller_id))

    def list_sellers(self) -> list[schemas.Seller]:
        return [schemas.Seller.model_validate(record) for record in self._repo.list_sellers()]

    # ------------------------------------------------------------------
    # Organizers

    def create_organizer(self, payload: OrganizerInput) -> schemas.Organizer:
        payload.organizer_name = _require_text(payload.organizer_name, "organizer_name")
        _require_choice(payload.organizer_type, OrganizerType, "organizer_type")
        if payload.organizer_code and self._repo.get_organizer_by_code(payload.organizer_code):
            raise ValidationError(f"Organizer code {payload.organizer_code} is already in use")
        record = self._repo.create_organizer(payload)
        self._session.commit()
        logger.info("Created organizer {} ({})", record.organizer_id, record.organizer_name)
        return schemas.Organizer.model_validate(record)

    def get_organizer(self, organizer_id: int) -> schemas.Organizer | None:
        return _present(schemas.Organizer, self._repo.get_organizer(organizer_id))

    def list_organizers(self) -> list[schemas.Organizer]:
        return [schemas.Organizer.model_validate(record) for record in self._repo.list_organizers()]

    # ------------------------------------------------------------------
    # Categories

    def create_category(self, payload: CategoryInput) -> schemas.Category:
        payload.category_name = _require_text(payload.category_name, "category_name")
        if payload.parent_category_id is not None and not self._repo.get_category(
            payload.parent_category_id
        ):
            raise ReferenceNotFound("category", payload.parent_category_id)
        record = self._repo.create_category(payload)
        self._session.commit()
        logger.info("Created category {} ({})", record.category_id, record.category_name)
        return schemas.Category.model_validate(record)

    def get_category(self, category_id: int) -> schemas.Category | None:
        return _present(schemas.Category, self._repo.get_category(category_id))

    def list_categories(self, *, roots_only: bool = False) -> list[schemas.Category]:
        records = self._repo.list_categories(roots_only=roots_only)
        return [schemas.Category.model_validate(record) for record in records]

    # ------------------------------------------------------------------
    # Bidders

    def create_bidder(self, payload: BidderInput) -> schemas.Bidder:
        payload.email = _require_text(payload.email, "email").lower()
        payload.full_name = _require_text(payload.full_name, "full_name")
        if self._repo.get_bidder_by_email(payload.email):
            raise ValidationError(f"Bidder email {payload.email} is already registered")
        record = self._repo.create_bidder(payload)
        self._session.commit()
        logger.info("Registered bidder {}", record.bidder_id)
        return schemas.Bidder.model_validate(record)

    def get_bidder(self, bidder_id: str) -> schemas.Bidder | None:
        return _present(schemas.Bidder, self._repo.get_bidder(bidder_id))

    def list_bidders(self) -> list[schemas.Bidder]:
        return [schemas.Bidder.model_validate(record) for record in self._repo.list_bidders()]

    # ------------------------------------------------------------------
    # Item references

    def ensure_item_references(
        self,
        *,
        category_id: int | None = None,
        seller_id: str | None = None,
        organizer_id: int | None = None,
    ) -> None:
        """Raise ``ReferenceNotFound`` for the first referenced entity that is missing."""

        if category_id is not None and self._repo.get_category(category_id) is None:
            raise ReferenceNotFound("category", category_id)
        if seller_id is not None and self._repo.get_seller(seller_id) is None:
            raise ReferenceNotFound("seller", seller_id)
        if organizer_id is not None and self._repo.get_organizer(organizer_id) is None:
            raise ReferenceNotFound("organizer", organizer_id)
