from __future__ import annotations

import pytest

from auctionhouse.domain import BidderInput, CategoryInput, Money, OrganizerInput, SellerInput
from auctionhouse.errors import ReferenceNotFound, ValidationError
from auctionhouse.services.directory_service import DirectoryService


def test_create_and_lookup_seller(session):
    """Verify sellers get a generated id and round-trip through lookups."""
    service = DirectoryService(session)
    seller = service.create_seller(SellerInput(seller_name="  PT Maju  ", seller_type="company"))

    assert seller.seller_name == "PT Maju"
    assert len(seller.seller_id) == 36
    assert service.get_seller(seller.seller_id) == seller
    assert service.get_seller("missing") is None
    assert [s.seller_id for s in service.list_sellers()] == [seller.seller_id]


def test_seller_type_must_be_known(session):
    """Verify unknown seller types are rejected before anything is written."""
    service = DirectoryService(session)
    with pytest.raises(ValidationError):
        service.create_seller(SellerInput(seller_name="X", seller_type="pirate"))
    assert service.list_sellers() == []


def test_organizer_code_is_unique(session):
    """Verify organizer codes cannot be reused."""
    service = DirectoryService(session)
    service.create_organizer(OrganizerInput(organizer_name="A", organizer_type="bank", organizer_code="C1"))
    with pytest.raises(ValidationError):
        service.create_organizer(
            OrganizerInput(organizer_name="B", organizer_type="bank", organizer_code="C1")
        )


def test_category_tree(session):
    """Verify sub-categories require an existing parent and roots can be filtered."""
    service = DirectoryService(session)
    root = service.create_category(CategoryInput(category_name="Property"))
    child = service.create_category(
        CategoryInput(category_name="Land", parent_category_id=root.category_id)
    )

    assert child.parent_category_id == root.category_id
    assert [c.category_id for c in service.list_categories(roots_only=True)] == [root.category_id]
    assert len(service.list_categories()) == 2
    with pytest.raises(ReferenceNotFound):
        service.create_category(CategoryInput(category_name="Orphan", parent_category_id=999))


def test_bidder_email_is_normalized_and_unique(session):
    """Verify emails are stored lowercased and duplicates are rejected case-insensitively."""
    service = DirectoryService(session)
    bidder = service.create_bidder(
        BidderInput(email="Dewi@Example.com", full_name="Dewi", balance=Money.parse("250.5"))
    )

    assert bidder.email == "dewi@example.com"
    assert bidder.balance == "250.50"
    with pytest.raises(ValidationError):
        service.create_bidder(BidderInput(email="DEWI@example.com", full_name="Dewi Again"))


def test_ensure_item_references_names_the_missing_kind(session, refs):
    """Verify the first missing reference is reported by kind."""
    service = DirectoryService(session)
    service.ensure_item_references(
        category_id=refs.category.category_id,
        seller_id=refs.seller.seller_id,
        organizer_id=refs.organizer.organizer_id,
    )

    with pytest.raises(ReferenceNotFound) as excinfo:
        service.ensure_item_references(category_id=refs.category.category_id, seller_id="nope")
    assert excinfo.value.kind == "seller"

    with pytest.raises(ReferenceNotFound) as excinfo:
        service.ensure_item_references(organizer_id=404)
    assert excinfo.value.kind == "organizer"
