"""Bid acceptance engine.

Every placement runs as validate-then-commit against a fresh snapshot of the
item. The commit is a conditional UPDATE on the item row keyed by the
snapshot's version, status, bid count and highest bid; if another writer got
there first the UPDATE touches no rows, the attempt rolls back and the whole
cycle (including every precondition) runs again. Items never share a row, so
bid streams on different items do not contend.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from auctionhouse import schemas
from auctionhouse.core.clock import Clock, SystemClock, ensure_utc
from auctionhouse.core.config import Settings, get_settings
from auctionhouse.db import session_scope
from auctionhouse.domain import BidProvenance, Money
from auctionhouse.domain.lifecycle import ItemEvent, accepts_bids, transition
from auctionhouse.errors import (
    AcceptanceTimeout,
    AuctionEnded,
    AuctionNotActive,
    AuctionNotStarted,
    BidBelowMinimum,
    BidBelowStartingPrice,
    BidCeilingReached,
    BidderNotFound,
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    ValidationError,
)
from auctionhouse.models import AuctionItem, Bidder
from auctionhouse.repositories import BidRepository, DirectoryRepository, ItemRepository

from .notifications import BidAcceptedEvent, BidNotifier, NullNotifier

_POSTGRES_LOCK_NOT_AVAILABLE = "55P03"


class _WriteConflict(Exception):
    """The item changed between snapshot and conditional update."""


@dataclass(slots=True)
class _Accepted:
    bid: schemas.Bid
    event: BidAcceptedEvent | None


def _is_lock_timeout(exc: OperationalError) -> bool:
    original = getattr(exc, "orig", None)
    if getattr(original, "sqlstate", None) == _POSTGRES_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(original).lower()


class BiddingEngine:
    """Validate and atomically record bids; stateless between calls."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Clock | None = None,
        notifier: BidNotifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._notifier = notifier or NullNotifier()
        self._max_attempts = settings.bid_max_attempts
        self._default_timeout = settings.bid_acceptance_timeout_seconds
        self._backoff = settings.bid_retry_backoff_schedule

    # ------------------------------------------------------------------
    # Placement

    def place_bid(
        self,
        item_id: int,
        bidder_id: str,
        amount: Money | str,
        provenance: BidProvenance | None = None,
        *,
        request_id: str | None = None,
        timeout: float | None = None,
    ) -> schemas.Bid:
        amount = Money.parse(amount)
        if not amount:
            raise InvalidAmount("Bid amount must be greater than zero")
        provenance = provenance or BidProvenance()
        budget = self._default_timeout if timeout is None else timeout
        deadline = time.monotonic() + budget

        attempt = 0
        while True:
            attempt += 1
            try:
                accepted = self._attempt(item_id, bidder_id, amount, provenance, request_id, deadline)
            except _WriteConflict:
                pass
            except OperationalError as exc:
                if not _is_lock_timeout(exc):
                    raise
                raise AcceptanceTimeout(
                    f"Timed out waiting for auction item {item_id} to accept bids"
                ) from exc
            else:
                if accepted.event is not None:
                    self._notify(accepted.event)
                return accepted.bid

            delay = self._retry_delay(attempt)
            exhausted = attempt >= self._max_attempts
            if exhausted or time.monotonic() + delay > deadline:
                logger.warning(
                    "Giving up on bid for item={} bidder={} after {} contended attempts",
                    item_id,
                    bidder_id,
                    attempt,
                )
                raise AcceptanceTimeout(
                    f"Bid on auction item {item_id} could not be committed after {attempt} attempts"
                )
            logger.warning(
                "Concurrent update on item={} (attempt {}/{}); retrying in {:.3f}s",
                item_id,
                attempt,
                self._max_attempts,
                delay,
            )
            time.sleep(delay)

    def _attempt(
        self,
        item_id: int,
        bidder_id: str,
        amount: Money,
        provenance: BidProvenance,
        request_id: str | None,
        deadline: float,
    ) -> _Accepted:
        with session_scope(self._session_factory) as session:
            self._limit_lock_wait(session, item_id, deadline)
            items = ItemRepository(session)
            bids = BidRepository(session)

            if request_id:
                previous = bids.find_by_request(bidder_id, request_id)
                if previous is not None:
                    if previous.item_id != item_id or previous.amount != amount:
                        raise ValidationError(
                            f"Request id {request_id} was already used for a different bid"
                        )
                    logger.info(
                        "Replayed bid {} for bidder={} request={}",
                        previous.bid_id,
                        bidder_id,
                        request_id,
                    )
                    return _Accepted(bid=schemas.Bid.model_validate(previous), event=None)

            item = session.get(
                AuctionItem, item_id, options=[selectinload(AuctionItem.schedule)]
            )
            now = self._clock.now()
            self._check_item(item, item_id, amount, now)
            self._check_bidder(DirectoryRepository(session).get_bidder(bidder_id), bidder_id, amount)

            next_status = transition(item.status, ItemEvent.BID_ACCEPTED)
            swapped = items.compare_and_set(
                item_id,
                expected_version=item.version,
                expected_status=item.status,
                expected_bid_count=item.bid_count,
                expected_highest=item.current_highest_bid,
                values={
                    "current_highest_bid": amount,
                    "bid_count": item.bid_count + 1,
                    "status": next_status.value,
                },
            )
            if not swapped:
                raise _WriteConflict()

            try:
                bid = bids.add_winning_bid(
                    item_id=item_id,
                    bidder_id=bidder_id,
                    amount=amount,
                    bid_time=now,
                    provenance=provenance,
                    request_id=request_id,
                )
            except IntegrityError as exc:
                if request_id:
                    # A concurrent submission with the same request id won; the
                    # retry will find and replay it.
                    raise _WriteConflict() from exc
                raise
            demoted = bids.demote_competitors(item_id, keep_bid_id=bid.bid_id)
            result = schemas.Bid.model_validate(bid)
            event = BidAcceptedEvent(
                bid_id=bid.bid_id,
                item_id=item_id,
                lot_code=item.lot_code,
                bidder_id=bidder_id,
                amount=amount.to_display_string(),
                bid_count=item.bid_count + 1,
                bid_time=ensure_utc(now),
            )

        logger.info(
            "Accepted bid {} on item={} bidder={} amount={} bid_count={} outbid={} status={}",
            result.bid_id,
            item_id,
            bidder_id,
            result.amount,
            event.bid_count,
            demoted,
            next_status.value,
        )
        return _Accepted(bid=result, event=event)

    @staticmethod
    def _limit_lock_wait(session: Session, item_id: int, deadline: float) -> None:
        """Cap how long this attempt may block on row or file locks to the time left."""

        remaining_ms = int((deadline - time.monotonic()) * 1000)
        if remaining_ms <= 0:
            raise AcceptanceTimeout(f"Ran out of time placing a bid on auction item {item_id}")

        dialect = session.get_bind().dialect.name
        if dialect == "sqlite":
            session.execute(text(f"PRAGMA busy_timeout = {remaining_ms}"))
        elif dialect == "postgresql":
            session.execute(text(f"SET LOCAL lock_timeout = '{remaining_ms}ms'"))

    @staticmethod
    def _check_item(item: AuctionItem | None, item_id: int, amount: Money, now: datetime) -> None:
        if item is None:
            raise ItemNotFound(item_id)
        if not accepts_bids(item.status):
            raise AuctionNotActive(f"Auction item {item_id} is {item.status} and not accepting bids")

        schedule = item.schedule
        if schedule is not None:
            now = ensure_utc(now)
            if now < ensure_utc(schedule.auction_start):
                raise AuctionNotStarted(f"Auction for item {item_id} has not started yet")
            if now > ensure_utc(schedule.auction_end):
                raise AuctionEnded(f"Auction for item {item_id} has ended")

        if item.bid_count == 0:
            if amount < item.starting_price:
                raise BidBelowStartingPrice(item.starting_price)
        else:
            minimum = item.minimum_next_bid
            if minimum is None:
                raise BidCeilingReached(
                    f"Auction item {item_id} is at the highest bid that can be represented"
                )
            if amount < minimum:
                raise BidBelowMinimum(minimum)

    @staticmethod
    def _check_bidder(bidder: Bidder | None, bidder_id: str, amount: Money) -> None:
        if bidder is None:
            raise BidderNotFound(bidder_id)
        # Balance is checked, never reserved.
        if bidder.balance < amount:
            raise InsufficientFunds(
                f"Balance {bidder.balance.to_display_string()} is below bid {amount.to_display_string()}"
            )

    def _retry_delay(self, attempt: int) -> float:
        base = self._backoff[min(attempt - 1, len(self._backoff) - 1)]
        jitter = random.uniform(0.0, base / 2) if base else 0.0
        return base + jitter

    def _notify(self, event: BidAcceptedEvent) -> None:
        try:
            self._notifier.bid_accepted(event)
        except Exception:  # noqa: BLE001 - the committed bid must stand
            logger.exception(
                "Bid notification failed bid={} item={}", event.bid_id, event.item_id
            )

    # ------------------------------------------------------------------
    # Ledger queries

    def list_item_bids(self, item_id: int) -> schemas.BidList:
        """Bids on an item, highest amount first."""

        with session_scope(self._session_factory) as session:
            if ItemRepository(session).get_item(item_id) is None:
                raise ItemNotFound(item_id)
            records = BidRepository(session).list_for_item(item_id)
            return self._as_list(records)

    def list_bidder_bids(self, bidder_id: str) -> schemas.BidList:
        """Bids placed by a bidder, newest first."""

        with session_scope(self._session_factory) as session:
            if DirectoryRepository(session).get_bidder(bidder_id) is None:
                raise BidderNotFound(bidder_id)
            records = BidRepository(session).list_for_bidder(bidder_id)
            return self._as_list(records)

    @staticmethod
    def _as_list(records: Sequence) -> schemas.BidList:
        items = [schemas.Bid.model_validate(record) for record in records]
        return schemas.BidList(total=len(items), items=items)
