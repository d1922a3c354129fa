import datetime as dt
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from foodlog.errors import DataIntegrityError
from foodlog.invalidation import InvalidationTracker
from foodlog.tests.helpers import Collector, make_entry, make_food


def test_tracker_routes_by_table():
    tracker = InvalidationTracker()
    seen = []
    h1 = tracker.add_observer({"foods"}, lambda t: seen.append(("a", t)))
    tracker.add_observer({"foods", "food_entries"}, lambda t: seen.append(("b", t)))
    tracker.notify({"food_entries"})
    assert seen == [("b", frozenset({"food_entries"}))]

    seen.clear()
    tracker.remove_observer(h1)
    tracker.notify({"foods"})
    assert seen == [("b", frozenset({"foods"}))]
    assert tracker.observer_count() == 1


def test_initial_snapshot_then_reemit_in_order(entries):
    entries.insert(make_entry(timestamp=dt.datetime(2024, 1, 1, 8)))
    sink = Collector()
    sub = entries.get_all().subscribe(sink.on_next, sink.on_error)
    try:
        s0 = sink.next()
        assert len(s0) == 1

        new_id = entries.insert(make_entry(timestamp=dt.datetime(2024, 1, 1, 12), meal_type="lunch"))
        s1 = sink.next()
        assert [e.id for e in s1] == [new_id] + [e.id for e in s0]
    finally:
        sub.cancel()


def test_subscribe_does_not_block_caller(store, foods):
    sink = Collector()

    # hold the connection lock so the first query cannot run yet
    with store._lock:
        sub = foods.get_all().subscribe(sink.on_next)
        sink.assert_silent(0.1)
    assert sink.next() == []
    sub.cancel()


def test_update_delete_and_search_reemit(foods):
    fid = foods.insert(make_food(name="Swiss cheese"))
    sink = Collector()
    sub = foods.search("cheese").subscribe(sink.on_next, sink.on_error)
    try:
        assert [f.name for f in sink.next()] == ["Swiss cheese"]

        foods.insert(make_food(name="Cream cheese"))
        assert [f.name for f in sink.next()] == ["Cream cheese", "Swiss cheese"]

        foods.update(make_food(id=fid, name="Swiss Cheese"))
        assert [f.name for f in sink.next()] == ["Cream cheese", "Swiss Cheese"]

        foods.delete(make_food(id=fid))
        assert [f.name for f in sink.next()] == ["Cream cheese"]
    finally:
        sub.cancel()


def test_writes_to_other_table_do_not_reemit(foods, entries):
    sink = Collector()
    sub = foods.get_all().subscribe(sink.on_next)
    try:
        assert sink.next() == []
        entries.insert(make_entry())
        sink.assert_silent()
    finally:
        sub.cancel()


def test_noop_delete_does_not_reemit(foods):
    sink = Collector()
    sub = foods.get_all().subscribe(sink.on_next)
    try:
        assert sink.next() == []
        foods.delete(make_food(id=42))
        sink.assert_silent()
    finally:
        sub.cancel()


def test_cancel_stops_emissions(store, foods):
    sink = Collector()
    sub = foods.get_all().subscribe(sink.on_next)
    assert sink.next() == []
    before = store.tracker.observer_count()

    sub.unsubscribe()
    sub.cancel()  # idempotent
    assert sub.cancelled
    assert store.tracker.observer_count() == before - 1

    foods.insert(make_food())
    sink.assert_silent()


def test_burst_of_writes_ends_with_latest_state(foods):
    sink = Collector()
    sub = foods.get_all().subscribe(sink.on_next)
    try:
        assert sink.next() == []
        for i in range(20):
            foods.insert(make_food(name=f"Food {i:02d}"))
        # emissions may be coalesced, but the last one must reflect every write
        last = sink.next()
        while len(last) < 20:
            last = sink.next()
        assert len(last) == 20
    finally:
        sub.cancel()


def test_decode_error_terminates_subscription(store, entries):
    sink = Collector()
    sub = entries.get_all().subscribe(sink.on_next, sink.on_error)
    assert sink.next() == []

    with store.transaction() as tx:
        tx.execute(
            "INSERT INTO food_entries (foodId, foodName, servings, calories, protein, carbs, fat, timestamp, mealType) "
            "VALUES (1,'Banana',1,105,1.3,27,0.3,'garbage','lunch')",
            table="food_entries",
        )
    err = sink.errors.get(timeout=5)
    assert isinstance(err, DataIntegrityError)
    assert sub.cancelled

    entries.insert(make_entry())
    sink.assert_silent()


def test_close_cancels_live_subscriptions(db_path):
    from foodlog.db import open_store
    from foodlog.repository import FoodDao

    store = open_store(db_path, config={"worker_threads": 1})
    sink = Collector()
    sub = FoodDao(store).get_all().subscribe(sink.on_next)
    assert sink.next() == []
    store.close()
    assert sub.cancelled
    assert store.tracker.observer_count() == 0


def test_emissions_never_overlap(foods):
    sink = Collector()
    lock = threading.Lock()
    active = 0
    peak = 0

    def slow_on_next(rows):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        sink.on_next(rows)

    sub = foods.get_all().subscribe(slow_on_next, sink.on_error)
    try:
        with ThreadPoolExecutor(max_workers=4) as pool:
            futs = [pool.submit(foods.insert, make_food(name=f"F{i:02d}")) for i in range(20)]
            for f in futs:
                f.result(timeout=5)
        last = sink.next()
        while len(last) < 20:
            last = sink.next()
        assert peak == 1
    finally:
        sub.cancel()


def test_commit_during_fetch_is_not_emitted_stale(foods):
    query = foods.get_all()
    real_fetch = query.fetch
    calls = []

    def fetch_then_write(cancel=None):
        rows = real_fetch(cancel)
        if not calls:
            calls.append(len(rows))
            foods.insert(make_food())
        return rows

    query.fetch = fetch_then_write
    sink = Collector()
    sub = query.subscribe(sink.on_next, sink.on_error)
    try:
        assert [f.name for f in sink.next()] == ["Banana"]
        assert calls == [0]
        sink.assert_silent()
    finally:
        sub.cancel()
