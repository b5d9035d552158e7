from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from conftest import load_item

from auctionhouse.domain import Money
from auctionhouse.errors import BidBelowMinimum, BidBelowStartingPrice

WORKERS = 8


def _run_together(count, fn):
    barrier = threading.Barrier(count)

    def _wrapped(index):
        barrier.wait()
        return fn(index)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_wrapped, range(count)))


def test_racing_ascending_bids_keep_a_consistent_ledger(session_factory, engine, make_item, refs):
    """Verify concurrent ascending bids never lose an update or leave two leaders."""
    item = make_item(starting_price="100", increment="10")
    amounts = [Money.parse("100") + Money.from_minor_units(1000 * i) for i in range(WORKERS)]
    bidders = [refs.alice, refs.bob]

    def _bid(index):
        try:
            return engine.place_bid(item.item_id, bidders[index % 2].bidder_id, amounts[index])
        except (BidBelowMinimum, BidBelowStartingPrice) as exc:
            return exc

    outcomes = _run_together(WORKERS, _bid)
    accepted = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
    rejected = [outcome for outcome in outcomes if isinstance(outcome, Exception)]

    assert accepted
    assert len(accepted) + len(rejected) == WORKERS
    # The highest candidate can never be undercut, so it always lands.
    assert max(Money.parse(bid.amount) for bid in accepted) == amounts[-1]

    ledger = engine.list_item_bids(item.item_id).items
    stored = load_item(session_factory, item.item_id)
    in_acceptance_order = [Money.parse(bid.amount) for bid in sorted(ledger, key=lambda b: b.bid_id)]
    assert all(a < b for a, b in zip(in_acceptance_order, in_acceptance_order[1:]))
    assert stored.bid_count == len(ledger) == len(accepted)
    leaders = [bid for bid in ledger if bid.is_highest]
    assert len(leaders) == 1
    assert leaders[0].amount == stored.current_highest_bid == amounts[-1].to_display_string()


def test_bidders_chasing_the_minimum_are_all_counted(session_factory, engine, make_item, refs):
    """Verify every bidder that re-reads the minimum eventually lands exactly one bid."""
    item = make_item(starting_price="100", increment="10")
    bidders = [refs.alice, refs.bob]

    def _chase(index):
        while True:
            minimum = Money.parse(load_item(session_factory, item.item_id).minimum_next_bid)
            try:
                return engine.place_bid(item.item_id, bidders[index % 2].bidder_id, minimum)
            except (BidBelowMinimum, BidBelowStartingPrice):
                continue

    accepted = _run_together(WORKERS, _chase)

    stored = load_item(session_factory, item.item_id)
    assert stored.bid_count == WORKERS
    expected = [
        (Money.parse("100") + Money.from_minor_units(1000 * i)).to_display_string()
        for i in range(WORKERS)
    ]
    assert sorted(bid.amount for bid in accepted) == sorted(expected)
    assert stored.current_highest_bid == expected[-1]
    ledger = engine.list_item_bids(item.item_id).items
    assert [bid.amount for bid in sorted(ledger, key=lambda b: b.bid_id)] == expected
    assert sum(bid.is_highest for bid in ledger) == 1


def test_different_items_do_not_interfere(session_factory, engine, make_item, refs):
    """Verify simultaneous first bids on separate lots are all accepted."""
    items = [make_item() for _ in range(4)]

    bids = _run_together(
        len(items),
        lambda index: engine.place_bid(items[index].item_id, refs.alice.bidder_id, "100"),
    )

    assert {bid.item_id for bid in bids} == {item.item_id for item in items}
    for item in items:
        stored = load_item(session_factory, item.item_id)
        assert (stored.bid_count, stored.current_highest_bid) == (1, "100.00")
