from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger

from . import schemas
from .core.clock import SystemClock
from .core.config import settings
from .db import SessionLocal, get_db, init_db
from .domain import BidProvenance, Money
from .errors import AuctionError, BidderNotFound, ItemNotFound, ReferenceNotFound
from .services.bidding_service import BiddingEngine
from .services.directory_service import DirectoryService
from .services.item_service import ItemService
from .services.notifications import BidNotifier, build_notifier

app = FastAPI(title="Auction House API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database connections when the API boots."""

    init_db()


@app.on_event("shutdown")
def on_shutdown() -> None:
    """Drain queued bid notifications before the process exits."""

    if _notifier.cache_info().currsize:
        logger.info("Flushing pending bid notifications")
        _notifier().close()
        _notifier.cache_clear()


@app.exception_handler(AuctionError)
def handle_auction_error(request: Request, exc: AuctionError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("{} {} failed: {}", request.method, request.url.path, exc.detail)
    payload = schemas.ErrorResponse(error=exc.code, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=payload.model_dump())


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


# ----------------------------------------------------------------------
# Dependencies


def _directory_service(db=Depends(get_db)) -> DirectoryService:
    return DirectoryService(db)


def _item_service(db=Depends(get_db)) -> ItemService:
    return ItemService(db)


@lru_cache
def _notifier() -> BidNotifier:
    return build_notifier(settings)


def _bidding_engine() -> BiddingEngine:
    """Engine bound to the shared session factory; it opens its own sessions per attempt."""

    return BiddingEngine(
        SessionLocal,
        clock=SystemClock(),
        notifier=_notifier(),
        settings=settings,
    )


# ----------------------------------------------------------------------
# Directory administration


@app.post("/admin/sellers", response_model=schemas.Seller, status_code=201, tags=["directory"])
def create_seller(payload: schemas.SellerCreate, service: DirectoryService = Depends(_directory_service)):
    return service.create_seller(payload.to_domain())


@app.get("/admin/sellers", response_model=list[schemas.Seller], tags=["directory"])
def list_sellers(service: DirectoryService = Depends(_directory_service)):
    return service.list_sellers()


@app.get("/admin/sellers/{seller_id}", response_model=schemas.Seller, tags=["directory"])
def get_seller(seller_id: str, service: DirectoryService = Depends(_directory_service)):
    seller = service.get_seller(seller_id)
    if not seller:
        raise ReferenceNotFound("seller", seller_id)
    return seller


@app.post("/admin/organizers", response_model=schemas.Organizer, status_code=201, tags=["directory"])
def create_organizer(
    payload: schemas.OrganizerCreate, service: DirectoryService = Depends(_directory_service)
):
    return service.create_organizer(payload.to_domain())


@app.get("/admin/organizers", response_model=list[schemas.Organizer], tags=["directory"])
def list_organizers(service: DirectoryService = Depends(_directory_service)):
    return service.list_organizers()


@app.get("/admin/organizers/{organizer_id}", response_model=schemas.Organizer, tags=["directory"])
def get_organizer(organizer_id: int, service: DirectoryService = Depends(_directory_service)):
    organizer = service.get_organizer(organizer_id)
    if not organizer:
        raise ReferenceNotFound("organizer", organizer_id)
    return organizer


@app.post("/admin/categories", response_model=schemas.Category, status_code=201, tags=["directory"])
def create_category(
    payload: schemas.CategoryCreate, service: DirectoryService = Depends(_directory_service)
):
    return service.create_category(payload.to_domain())


@app.get("/admin/categories", response_model=list[schemas.Category], tags=["directory"])
def list_categories(
    roots_only: Annotated[bool, Query(description="Only return top-level categories")] = False,
    service: DirectoryService = Depends(_directory_service),
):
    return service.list_categories(roots_only=roots_only)


@app.get("/admin/categories/{category_id}", response_model=schemas.Category, tags=["directory"])
def get_category(category_id: int, service: DirectoryService = Depends(_directory_service)):
    category = service.get_category(category_id)
    if not category:
        raise ReferenceNotFound("category", category_id)
    return category


@app.post("/admin/bidders", response_model=schemas.Bidder, status_code=201, tags=["directory"])
def create_bidder(payload: schemas.BidderCreate, service: DirectoryService = Depends(_directory_service)):
    return service.create_bidder(payload.to_domain())


@app.get("/admin/bidders", response_model=list[schemas.Bidder], tags=["directory"])
def list_bidders(service: DirectoryService = Depends(_directory_service)):
    return service.list_bidders()


@app.get("/admin/bidders/{bidder_id}", response_model=schemas.Bidder, tags=["directory"])
def get_bidder(bidder_id: str, service: DirectoryService = Depends(_directory_service)):
    bidder = service.get_bidder(bidder_id)
    if not bidder:
        raise BidderNotFound(bidder_id)
    return bidder


# ----------------------------------------------------------------------
# Item administration


@app.post("/admin/items", response_model=schemas.AuctionItem, status_code=201, tags=["items"])
def create_item(payload: schemas.ItemCreate, service: ItemService = Depends(_item_service)):
    """List a new lot in draft status."""

    return service.create_item(payload.to_domain())


@app.get("/admin/items", response_model=schemas.AuctionItemList, tags=["items"])
def list_items(
    status: Annotated[
        str | None,
        Query(
            description="Lifecycle status filter",
            pattern="^(draft|published|ongoing|closed|cancelled)$",
        ),
    ] = None,
    service: ItemService = Depends(_item_service),
):
    return service.list_items(status=status)


@app.put("/admin/items/{item_id}", response_model=schemas.AuctionItem, tags=["items"])
def update_item(
    item_id: int,
    payload: schemas.ItemUpdateRequest,
    service: ItemService = Depends(_item_service),
):
    """Edit a draft lot; any field left out keeps its stored value."""

    return service.update_item(item_id, payload.to_domain())


@app.delete("/admin/items/{item_id}", status_code=204, tags=["items"])
def delete_item(item_id: int, service: ItemService = Depends(_item_service)):
    service.delete_item(item_id)
    return Response(status_code=204)


@app.post("/admin/items/{item_id}/publish", response_model=schemas.AuctionItem, tags=["items"])
def publish_item(item_id: int, service: ItemService = Depends(_item_service)):
    return service.publish_item(item_id)


@app.post("/admin/items/{item_id}/cancel", response_model=schemas.AuctionItem, tags=["items"])
def cancel_item(item_id: int, service: ItemService = Depends(_item_service)):
    return service.cancel_item(item_id)


@app.post("/admin/items/{item_id}/close", response_model=schemas.AuctionItem, tags=["items"])
def close_item(item_id: int, service: ItemService = Depends(_item_service)):
    """Close an ongoing auction and settle its bids."""

    return service.close_item(item_id)


# ----------------------------------------------------------------------
# Public auction views and bidding


@app.get("/auctions/{item_id}", response_model=schemas.AuctionItem, tags=["auctions"])
def get_auction(item_id: int, service: ItemService = Depends(_item_service)):
    """Retrieve a lot and count the view."""

    item = service.get_item(item_id, count_view=True)
    if not item:
        raise ItemNotFound(item_id)
    return item


@app.get("/auctions/{item_id}/bids", response_model=schemas.BidList, tags=["auctions"])
def list_auction_bids(item_id: int, engine: BiddingEngine = Depends(_bidding_engine)):
    """Bid history for a lot, highest amount first."""

    return engine.list_item_bids(item_id)


@app.post("/bids", response_model=schemas.Bid, status_code=201, tags=["bids"])
def place_bid(
    payload: schemas.PlaceBidRequest,
    request: Request,
    engine: BiddingEngine = Depends(_bidding_engine),
):
    provenance = BidProvenance(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return engine.place_bid(
        payload.item_id,
        payload.bidder_id,
        Money.parse(payload.amount),
        provenance,
        request_id=payload.request_id,
    )


@app.get("/bidders/{bidder_id}/bids", response_model=schemas.BidList, tags=["bids"])
def list_bidder_bids(bidder_id: str, engine: BiddingEngine = Depends(_bidding_engine)):
    return engine.list_bidder_bids(bidder_id)
