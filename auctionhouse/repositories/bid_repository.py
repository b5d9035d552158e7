"""Append-only bid ledger."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from auctionhouse.domain import BidProvenance, Money
from auctionhouse.models import Bid, BidStatus

_SUPERSEDABLE = (BidStatus.ACTIVE.value, BidStatus.WINNING.value)


class BidRepository:
    """Insert bids and drive their status flags; rows are never deleted."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def add_winning_bid(
        self,
        *,
        item_id: int,
        bidder_id: str,
        amount: Money,
        bid_time: datetime,
        provenance: BidProvenance,
        request_id: str | None,
    ) -> Bid:
        record = Bid(
            item_id=item_id,
            bidder_id=bidder_id,
            amount=amount,
            status=BidStatus.WINNING.value,
            is_highest=True,
            bid_time=bid_time,
            ip_address=provenance.ip_address,
            user_agent=provenance.user_agent,
            request_id=request_id,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def demote_competitors(self, item_id: int, *, keep_bid_id: int) -> int:
        """Mark every other active or winning bid on the item as outbid."""

        result = self._session.execute(
            update(Bid)
            .where(
                Bid.item_id == item_id,
                Bid.bid_id != keep_bid_id,
                Bid.status.in_(_SUPERSEDABLE),
            )
            .values(status=BidStatus.OUTBID.value, is_highest=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def settle(self, item_id: int) -> tuple[int, int]:
        """Turn the winning bid into ``won`` and every other live bid into ``lost``."""

        won = self._session.execute(
            update(Bid)
            .where(Bid.item_id == item_id, Bid.status == BidStatus.WINNING.value)
            .values(status=BidStatus.WON.value)
            .execution_options(synchronize_session=False)
        ).rowcount
        lost = self._session.execute(
            update(Bid)
            .where(
                Bid.item_id == item_id,
                Bid.status.in_((BidStatus.ACTIVE.value, BidStatus.OUTBID.value)),
            )
            .values(status=BidStatus.LOST.value, is_highest=False)
            .execution_options(synchronize_session=False)
        ).rowcount
        return won, lost

    # ------------------------------------------------------------------
    # Queries

    def find_by_request(self, bidder_id: str, request_id: str) -> Bid | None:
        query = select(Bid).where(Bid.bidder_id == bidder_id, Bid.request_id == request_id)
        return self._session.execute(query).scalars().first()

    def winning_bid(self, item_id: int) -> Bid | None:
        query = select(Bid).where(Bid.item_id == item_id, Bid.is_highest.is_(True))
        return self._session.execute(query).scalars().first()

    def list_for_item(self, item_id: int) -> Sequence[Bid]:
        query = (
            select(Bid)
            .where(Bid.item_id == item_id)
            .order_by(Bid.amount.desc(), Bid.bid_time.desc(), Bid.bid_id.desc())
        )
        return self._session.execute(query).scalars().all()

    def list_for_bidder(self, bidder_id: str) -> Sequence[Bid]:
        query = (
            select(Bid)
            .where(Bid.bidder_id == bidder_id)
            .order_by(Bid.bid_time.desc(), Bid.bid_id.desc())
        )
        return self._session.execute(query).scalars().all()
