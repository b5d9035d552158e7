from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from conftest import NOW
from fastapi.testclient import TestClient

from auctionhouse import main, schemas
from auctionhouse.db import get_db
from auctionhouse.domain import BidProvenance, Money
from auctionhouse.errors import AcceptanceTimeout, BidBelowMinimum, BidCeilingReached, ItemNotFound
from auctionhouse.main import _bidding_engine, _item_service, app


@pytest.fixture
def client():
    """Test client that cleans up dependency overrides after each test."""
    yield TestClient(app)
    app.dependency_overrides.clear()


def _bid(**overrides) -> schemas.Bid:
    values = dict(
        bid_id=1,
        item_id=2,
        bidder_id="b-1",
        amount="110.00",
        status="winning",
        is_highest=True,
        bid_time=datetime(2024, 6, 1, 12, 0),
    )
    values.update(overrides)
    return schemas.Bid(**values)


def test_healthcheck(client):
    """Verify the healthcheck endpoint returns a successful response."""
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_place_bid_passes_provenance(client):
    """Verify POST /bids forwards the parsed amount and client metadata."""
    mock_engine = MagicMock()
    mock_engine.place_bid.return_value = _bid()
    app.dependency_overrides[_bidding_engine] = lambda: mock_engine

    response = client.post(
        "/bids",
        json={"item_id": 2, "bidder_id": "b-1", "amount": 110, "request_id": "r-1"},
        headers={"User-Agent": "bidder-app/1.0"},
    )

    assert response.status_code == 201
    assert response.json()["amount"] == "110.00"
    args, kwargs = mock_engine.place_bid.call_args
    assert args[:3] == (2, "b-1", Money.parse("110"))
    assert args[3] == BidProvenance(ip_address="testclient", user_agent="bidder-app/1.0")
    assert kwargs == {"request_id": "r-1"}


@pytest.mark.parametrize(
    "error, status, code",
    [
        (BidBelowMinimum(Money.parse("120")), 409, "bid_below_minimum"),
        (BidCeilingReached(), 409, "bid_ceiling_reached"),
        (ItemNotFound(2), 404, "item_not_found"),
        (AcceptanceTimeout(), 503, "acceptance_timeout"),
    ],
)
def test_domain_errors_map_to_status_codes(client, error, status, code):
    """Verify domain errors become JSON error bodies with the right status."""
    mock_engine = MagicMock()
    mock_engine.place_bid.side_effect = error
    app.dependency_overrides[_bidding_engine] = lambda: mock_engine

    response = client.post("/bids", json={"item_id": 2, "bidder_id": "b-1", "amount": "130"})

    assert response.status_code == status
    assert response.json() == {"error": code, "detail": str(error)}


def test_shutdown_flushes_the_notifier(monkeypatch):
    """Verify the shutdown hook closes the cached notifier so queued webhooks are sent."""
    notifier = MagicMock()
    monkeypatch.setattr(main, "build_notifier", lambda _settings: notifier)
    main._notifier.cache_clear()

    assert main._notifier() is notifier
    main.on_shutdown()

    notifier.close.assert_called_once_with()
    assert main._notifier.cache_info().currsize == 0


def test_shutdown_without_notifier_is_a_noop(monkeypatch):
    """Verify shutdown does not build a notifier just to close it."""
    build = MagicMock()
    monkeypatch.setattr(main, "build_notifier", build)
    main._notifier.cache_clear()

    main.on_shutdown()

    build.assert_not_called()


def test_malformed_amount_is_rejected_before_the_engine(client):
    """Verify request validation stops over-precise amounts."""
    mock_engine = MagicMock()
    app.dependency_overrides[_bidding_engine] = lambda: mock_engine

    response = client.post("/bids", json={"item_id": 2, "bidder_id": "b-1", "amount": "1.001"})

    assert response.status_code == 422
    mock_engine.place_bid.assert_not_called()


def test_get_auction_not_found(client):
    """Verify missing lots return a 404 error body."""
    mock_service = MagicMock()
    mock_service.get_item.return_value = None
    app.dependency_overrides[_item_service] = lambda: mock_service

    response = client.get("/auctions/5")

    assert response.status_code == 404
    assert response.json()["error"] == "item_not_found"
    mock_service.get_item.assert_called_once_with(5, count_view=True)


def test_list_items_rejects_unknown_status(client):
    """Verify the status filter is validated at the edge."""
    app.dependency_overrides[_item_service] = lambda: MagicMock()
    assert client.get("/admin/items", params={"status": "archived"}).status_code == 422


def test_full_auction_flow(client, session_factory, engine):
    """Verify listing, publishing, bidding and closing through the HTTP API."""

    def _db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[_bidding_engine] = lambda: engine

    seller = client.post("/admin/sellers", json={"seller_name": "Bank A", "seller_type": "bank"}).json()
    organizer = client.post("/admin/organizers", json={"organizer_name": "KPKNL", "organizer_type": "KPKNL"}).json()
    category = client.post("/admin/categories", json={"category_name": "Cars"}).json()
    alice = client.post(
        "/admin/bidders", json={"email": "a@example.com", "full_name": "A", "balance": "1000"}
    ).json()
    bob = client.post(
        "/admin/bidders", json={"email": "b@example.com", "full_name": "B", "balance": "1000"}
    ).json()
    assert client.get(f"/admin/bidders/{alice['bidder_id']}").json()["balance"] == "1000.00"
    assert client.get("/admin/sellers/unknown").status_code == 404

    created = client.post(
        "/admin/items",
        json={
            "lot_code": "LOT-HTTP",
            "item_name": "Sedan",
            "category_id": category["category_id"],
            "seller_id": seller["seller_id"],
            "organizer_id": organizer["organizer_id"],
            "item_type": "movable",
            "starting_price": "100",
            "increment_amount": "10",
        },
    )
    assert created.status_code == 201
    item_id = created.json()["item_id"]

    assert client.post(f"/admin/items/{item_id}/publish").json()["error"] == "schedule_prerequisite_missing"
    window = {
        "auction_start": (NOW - timedelta(hours=1)).isoformat(),
        "auction_end": (NOW + timedelta(hours=1)).isoformat(),
    }
    assert client.put(f"/admin/items/{item_id}", json={"schedule": window}).status_code == 200
    assert client.post(f"/admin/items/{item_id}/publish").json()["status"] == "published"

    first = client.post("/bids", json={"item_id": item_id, "bidder_id": alice["bidder_id"], "amount": "100"})
    low = client.post("/bids", json={"item_id": item_id, "bidder_id": bob["bidder_id"], "amount": "105"})
    second = client.post("/bids", json={"item_id": item_id, "bidder_id": bob["bidder_id"], "amount": 110})
    assert (first.status_code, low.status_code, second.status_code) == (201, 409, 201)
    assert low.json()["detail"] == "Bid must be at least 110.00"

    auction = client.get(f"/auctions/{item_id}").json()
    assert (auction["status"], auction["current_highest_bid"], auction["bid_count"]) == ("ongoing", "110.00", 2)
    assert auction["view_count"] == 1

    history = client.get(f"/auctions/{item_id}/bids").json()
    assert [(bid["amount"], bid["status"]) for bid in history["items"]] == [
        ("110.00", "winning"),
        ("100.00", "outbid"),
    ]
    assert client.get(f"/bidders/{bob['bidder_id']}/bids").json()["total"] == 1

    assert client.delete(f"/admin/items/{item_id}").status_code == 409
    closed = client.post(f"/admin/items/{item_id}/close").json()
    assert closed["status"] == "closed"
    statuses = [bid["status"] for bid in client.get(f"/auctions/{item_id}/bids").json()["items"]]
    assert statuses == ["won", "lost"]
    listed = client.get("/admin/items", params={"status": "closed"}).json()
    assert [item["item_id"] for item in listed["items"]] == [item_id]
