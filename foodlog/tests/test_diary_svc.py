import datetime as dt

import pytest

from foodlog.domain.nutrition import round_half_up, snapshot_entry
from foodlog.services import diary_svc
from foodlog.tests.helpers import make_food


def test_round_half_up():
    assert round_half_up(2.5) == 3.0
    assert round_half_up(157.5) == 158.0
    assert round_half_up(1.005, 2) == 1.01
    assert round_half_up(0.0) == 0.0


def test_snapshot_scales_nutrition():
    food = make_food(id=4)
    entry = snapshot_entry(food, 1.5, "snack", dt.datetime(2024, 1, 1, 10))
    assert entry.id == 0
    assert entry.food_id == 4
    assert entry.food_name == "Banana"
    assert entry.calories == 158
    assert entry.protein == 1.95
    assert entry.carbs == 40.5
    assert entry.fat == 0.45


def test_snapshot_rejects_non_positive_servings():
    with pytest.raises(ValueError):
        snapshot_entry(make_food(id=1), 0, "lunch", dt.datetime(2024, 1, 1))


def test_log_food_and_daily_totals(foods, entries):
    fid = foods.insert(make_food())
    banana = foods.get_by_id(fid)
    oats = foods.get_by_id(foods.insert(make_food(name="Oats", calories=150, protein=5, carbs=27, fat=2.5)))

    e1 = diary_svc.log_food(entries, banana, 2, "breakfast", dt.datetime(2024, 1, 1, 8))
    assert e1.id > 0
    assert entries.get_by_id(e1.id) == e1
    diary_svc.log_food(entries, oats, 1, "breakfast", dt.datetime(2024, 1, 1, 8, 5))
    diary_svc.log_food(entries, banana, 1, "snack", dt.datetime(2024, 1, 1, 16))
    diary_svc.log_food(entries, banana, 1, "snack", dt.datetime(2024, 1, 2, 16))

    totals = diary_svc.daily_totals(entries, dt.date(2024, 1, 1))
    assert totals.entry_count == 3
    assert totals.total.calories == 210 + 150 + 105
    assert totals.total.protein == pytest.approx(2.6 + 5 + 1.3)
    assert set(totals.by_meal) == {"breakfast", "snack"}
    assert totals.by_meal["snack"].calories == 105


def test_log_food_requires_saved_food(entries):
    with pytest.raises(ValueError):
        diary_svc.log_food(entries, make_food(), 1, "lunch")


def test_recent_entries_uses_configured_limit(tmp_path, monkeypatch, foods, entries):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("recent_limit: 1\n", encoding="utf-8")
    monkeypatch.setenv("FOODLOG_CONFIG", str(cfg))
    banana = foods.get_by_id(foods.insert(make_food()))
    oats = foods.get_by_id(foods.insert(make_food(name="Oats")))
    diary_svc.log_food(entries, banana, 1, "lunch", dt.datetime(2024, 1, 1, 12))
    diary_svc.log_food(entries, oats, 1, "lunch", dt.datetime(2024, 1, 1, 13))

    recent = diary_svc.recent_entries(entries)
    assert [e.food_name for e in recent] == ["Oats"]
