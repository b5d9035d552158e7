from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from auctionhouse.core.clock import FixedClock
from auctionhouse.core.config import Settings
from auctionhouse.db import build_db_components, init_db, session_scope
from auctionhouse.domain import (
    BidderInput,
    CategoryInput,
    ItemDraft,
    Money,
    OrganizerInput,
    ScheduleInput,
    SellerInput,
)
from auctionhouse.services.bidding_service import BiddingEngine
from auctionhouse.services.directory_service import DirectoryService
from auctionhouse.services.item_service import ItemService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'auctionhouse.db'}",
        bid_acceptance_timeout_seconds=30.0,
        bid_max_attempts=100,
        bid_retry_backoff_seconds=[0.0, 0.001, 0.005],
        notification_webhook_url=None,
    )
    monkeypatch.setattr("auctionhouse.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("auctionhouse.core.config.settings", settings)
    return settings


@pytest.fixture
def session_factory(test_settings):
    engine, factory = build_db_components(test_settings.resolved_database_url)
    init_db(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def engine(session_factory, clock, notifier, test_settings) -> BiddingEngine:
    return BiddingEngine(session_factory, clock=clock, notifier=notifier, settings=test_settings)


@pytest.fixture
def refs(session_factory) -> SimpleNamespace:
    """Seller, organizer, category and three bidders with distinct balances."""

    with session_scope(session_factory) as session:
        directory = DirectoryService(session)
        seller = directory.create_seller(SellerInput(seller_name="Bank Mandiri", seller_type="bank"))
        organizer = directory.create_organizer(
            OrganizerInput(organizer_name="KPKNL Jakarta", organizer_type="KPKNL", organizer_code="JKT-1")
        )
        category = directory.create_category(CategoryInput(category_name="Vehicles"))
        alice = directory.create_bidder(
            BidderInput(email="alice@example.com", full_name="Alice", balance=Money.parse("10000"))
        )
        bob = directory.create_bidder(
            BidderInput(email="bob@example.com", full_name="Bob", balance=Money.parse("10000"))
        )
        carol = directory.create_bidder(
            BidderInput(email="carol@example.com", full_name="Carol", balance=Money.parse("50"))
        )
    return SimpleNamespace(
        seller=seller, organizer=organizer, category=category, alice=alice, bob=bob, carol=carol
    )


def open_window(now: datetime = NOW) -> ScheduleInput:
    return ScheduleInput(auction_start=now - timedelta(hours=1), auction_end=now + timedelta(hours=1))


@pytest.fixture
def make_item(session_factory, refs):
    """Create an item; published with an open window unless told otherwise."""

    counter = iter(range(1, 10_000))

    def _make(
        *,
        starting_price: str = "100",
        increment: str = "10",
        schedule: ScheduleInput | None | str = "open",
        publish: bool = True,
        lot_code: str | None = None,
    ):
        if schedule == "open":
            schedule = open_window()
        draft = ItemDraft(
            lot_code=lot_code or f"LOT-{next(counter):04d}",
            item_name="Toyota Avanza 2019",
            category_id=refs.category.category_id,
            seller_id=refs.seller.seller_id,
            organizer_id=refs.organizer.organizer_id,
            item_type="movable",
            starting_price=Money.parse(starting_price),
            increment_amount=Money.parse(increment),
            schedule=schedule,
        )
        with session_scope(session_factory) as session:
            service = ItemService(session)
            item = service.create_item(draft)
            if publish:
                item = service.publish_item(item.item_id)
        return item

    return _make


def load_item(session_factory, item_id: int):
    with session_scope(session_factory) as session:
        return ItemService(session).require_item(item_id)
