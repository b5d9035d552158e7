"""Fire-and-forget notification sinks invoked after a bid is committed."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import httpx
from loguru import logger

from auctionhouse.core.config import Settings

WEBHOOK_EVENT = "bid.accepted"


@dataclass(slots=True, frozen=True)
class BidAcceptedEvent:
    bid_id: int
    item_id: int
    lot_code: str
    bidder_id: str
    amount: str
    bid_count: int
    bid_time: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "event": WEBHOOK_EVENT,
            "bid": {
                "bid_id": self.bid_id,
                "item_id": self.item_id,
                "lot_code": self.lot_code,
                "bidder_id": self.bidder_id,
                "amount": self.amount,
                "bid_count": self.bid_count,
                "bid_time": self.bid_time.isoformat(),
            },
        }


class BidNotifier(Protocol):
    def bid_accepted(self, event: BidAcceptedEvent) -> None:
        ...

    def close(self) -> None:
        ...


class NullNotifier:
    def bid_accepted(self, event: BidAcceptedEvent) -> None:
        return None

    def close(self) -> None:
        return None


class WebhookNotifier:
    """POST accepted bids to a webhook from a background worker thread."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        executor: ThreadPoolExecutor | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="bid-webhook"
        )
        self._client = client

    def bid_accepted(self, event: BidAcceptedEvent) -> Future:
        return self._executor.submit(self._deliver, event)

    def _deliver(self, event: BidAcceptedEvent) -> bool:
        payload = event.to_payload()
        try:
            if self._client is not None:
                response = self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception(
                "Bid webhook delivery failed bid={} item={} url={}",
                event.bid_id,
                event.item_id,
                self._url,
            )
            return False
        logger.debug("Delivered bid webhook bid={} status={}", event.bid_id, response.status_code)
        return True

    def close(self) -> None:
        """Wait for queued deliveries, then release the worker threads."""

        self._executor.shutdown(wait=True)


def build_notifier(settings: Settings) -> BidNotifier:
    if not settings.notification_webhook_url:
        return NullNotifier()
    return WebhookNotifier(
        str(settings.notification_webhook_url),
        timeout=settings.notification_timeout_seconds,
    )


__all__ = [
    "BidAcceptedEvent",
    "BidNotifier",
    "NullNotifier",
    "WebhookNotifier",
    "build_notifier",
]
