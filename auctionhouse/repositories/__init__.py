"""Repository abstractions for database interactions."""

from .bid_repository import BidRepository
from .directory_repository import DirectoryRepository
from .item_repository import ItemRepository

__all__ = [
    "BidRepository",
    "DirectoryRepository",
    "ItemRepository",
]
