"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class AuctionError(Exception):
    """Base class for every business error raised by the auction core."""

    code = "auction_error"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code.replace("_", " "))

    @property
    def detail(self) -> str:
        return str(self)


# ----------------------------------------------------------------------
# Missing entities


class NotFoundError(AuctionError):
    code = "not_found"
    status_code = 404


class ItemNotFound(NotFoundError):
    code = "item_not_found"

    def __init__(self, item_id: int) -> None:
        super().__init__(f"Auction item {item_id} not found")
        self.item_id = item_id


class BidderNotFound(NotFoundError):
    code = "bidder_not_found"

    def __init__(self, bidder_id: str) -> None:
        super().__init__(f"Bidder {bidder_id} not found")
        self.bidder_id = bidder_id


class ReferenceNotFound(NotFoundError):
    """A seller, organizer or category referenced by an item does not exist."""

    code = "reference_not_found"

    def __init__(self, kind: str, reference_id: object) -> None:
        super().__init__(f"{kind.capitalize()} {reference_id} not found")
        self.kind = kind
        self.reference_id = reference_id


# ----------------------------------------------------------------------
# Malformed input


class ValidationError(AuctionError):
    code = "validation_error"
    status_code = 422


class InvalidAmount(ValidationError, ValueError):
    code = "invalid_amount"


# ----------------------------------------------------------------------
# Business-rule rejections; never retried and never mutate state


class PreconditionError(AuctionError):
    code = "precondition_failed"
    status_code = 409


class IllegalTransition(PreconditionError):
    code = "illegal_transition"

    def __init__(self, status: str, event: str) -> None:
        super().__init__(f"Cannot apply '{event}' to an item in status '{status}'")
        self.status = status
        self.event = event


class SchedulePrerequisiteMissing(PreconditionError):
    code = "schedule_prerequisite_missing"

    def __init__(self, item_id: int) -> None:
        super().__init__(f"Auction item {item_id} needs a schedule before it can be published")


class ItemNotEditable(PreconditionError):
    code = "item_not_editable"


class ItemNotDeletable(PreconditionError):
    code = "item_not_deletable"


class AuctionNotActive(PreconditionError):
    code = "auction_not_active"


class AuctionNotStarted(PreconditionError):
    code = "auction_not_started"


class AuctionEnded(PreconditionError):
    code = "auction_ended"


class BidBelowStartingPrice(PreconditionError):
    code = "bid_below_starting_price"

    def __init__(self, starting_price) -> None:
        super().__init__(
            f"Bid must be at least the starting price: {starting_price.to_display_string()}"
        )
        self.starting_price = starting_price


class BidBelowMinimum(PreconditionError):
    code = "bid_below_minimum"

    def __init__(self, min_required) -> None:
        super().__init__(f"Bid must be at least {min_required.to_display_string()}")
        self.min_required = min_required


class BidCeilingReached(PreconditionError):
    code = "bid_ceiling_reached"


class InsufficientFunds(PreconditionError):
    code = "insufficient_funds"


# ----------------------------------------------------------------------
# Contention


class AcceptanceTimeout(AuctionError):
    """Bid could not be committed within the attempt or time budget."""

    code = "acceptance_timeout"
    status_code = 503


__all__ = [
    "AcceptanceTimeout",
    "AuctionEnded",
    "AuctionError",
    "AuctionNotActive",
    "AuctionNotStarted",
    "BidBelowMinimum",
    "BidBelowStartingPrice",
    "BidCeilingReached",
    "BidderNotFound",
    "IllegalTransition",
    "InsufficientFunds",
    "InvalidAmount",
    "ItemNotDeletable",
    "ItemNotEditable",
    "ItemNotFound",
    "NotFoundError",
    "PreconditionError",
    "ReferenceNotFound",
    "SchedulePrerequisiteMissing",
    "ValidationError",
]
