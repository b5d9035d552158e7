import argparse
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from loguru import logger

from auctionhouse.core.config import get_settings
from auctionhouse.db import SessionLocal, init_db, session_scope
from auctionhouse.domain import (
    BidderInput,
    BidProvenance,
    CategoryInput,
    ItemDraft,
    Money,
    OrganizerInput,
    ScheduleInput,
    SellerInput,
)
from auctionhouse.errors import AuctionError
from auctionhouse.services.bidding_service import BiddingEngine
from auctionhouse.services.directory_service import DirectoryService
from auctionhouse.services.item_service import ItemService


def _parse_money(value: str) -> Money:
    try:
        return Money.parse(value)
    except AuctionError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a demo auction with reference data and bidders")
    parser.add_argument("--lot-code", default=None, help="Lot code for the demo item (default: timestamped)")
    parser.add_argument("--bidders", type=int, default=3, help="Number of demo bidders to register")
    parser.add_argument(
        "--starting-price", type=_parse_money, default=Money.parse("100.00"), help="Starting price"
    )
    parser.add_argument(
        "--increment", type=_parse_money, default=Money.parse("10.00"), help="Minimum bid increment"
    )
    parser.add_argument(
        "--balance", type=_parse_money, default=Money.parse("10000.00"), help="Balance for each bidder"
    )
    parser.add_argument(
        "--hours", type=float, default=24.0, help="Length of the bidding window starting now"
    )
    parser.add_argument(
        "--place-bids",
        action="store_true",
        help="Have every demo bidder place one ascending bid after publishing",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    init_db()

    now = datetime.now(timezone.utc)
    lot_code = args.lot_code or f"DEMO-{now:%Y%m%d%H%M%S}"
    suffix = now.strftime("%Y%m%d%H%M%S")

    with session_scope() as session:
        directory = DirectoryService(session)
        seller = directory.create_seller(
            SellerInput(seller_name="Demo Seller", seller_type="company", email="seller@example.com")
        )
        organizer = directory.create_organizer(
            OrganizerInput(organizer_name="Demo Auction House", organizer_type="private")
        )
        category = directory.create_category(CategoryInput(category_name="Vehicles"))
        bidders = [
            directory.create_bidder(
                BidderInput(
                    email=f"bidder{index}+{suffix}@example.com",
                    full_name=f"Demo Bidder {index}",
                    balance=args.balance,
                )
            )
            for index in range(1, args.bidders + 1)
        ]

        items = ItemService(session)
        item = items.create_item(
            ItemDraft(
                lot_code=lot_code,
                item_name="Demo lot",
                category_id=category.category_id,
                seller_id=seller.seller_id,
                organizer_id=organizer.organizer_id,
                item_type="movable",
                starting_price=args.starting_price,
                increment_amount=args.increment,
                schedule=ScheduleInput(
                    auction_start=now - timedelta(minutes=1),
                    auction_end=now + timedelta(hours=args.hours),
                ),
            )
        )
        item = items.publish_item(item.item_id)

    logger.info(
        "Seeded item {} lot={} with {} bidders (db={})",
        item.item_id,
        item.lot_code,
        len(bidders),
        settings.resolved_database_url,
    )

    if not args.place_bids:
        return

    engine = BiddingEngine(SessionLocal, settings=settings)
    amount = args.starting_price
    for bidder in bidders:
        bid = engine.place_bid(
            item.item_id,
            bidder.bidder_id,
            amount,
            BidProvenance(user_agent="seed_demo"),
        )
        logger.info("Bidder {} placed {} (bid {})", bidder.full_name, bid.amount, bid.bid_id)
        amount = amount + args.increment


if __name__ == "__main__":
    main()
