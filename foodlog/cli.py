#!/usr/bin/env python3
"""
Food diary CLI (SQLite)

Commands:
  init        Create the database (or validate an existing one)
  add-food    Add a food to the catalogue
  foods       List foods, optionally filtered by a name substring
  log         Log servings of a food as a diary entry
  day         Print a day's entries and nutrition totals

The database path comes from --db, FOODLOG_DB_PATH or config.yaml.
"""
from __future__ import annotations

import argparse
import datetime as dt
import os
import sys

from .config import configure_logging
from .db import open_store
from .domain.models import Food
from .errors import FoodLogError
from .repository import FoodDao, FoodEntryDao
from .services import diary_svc


def cmd_init(store, args):
    print(f"database ready: {store.path}")


def cmd_add_food(store, args):
    food = Food(
        name=args.name,
        calories=args.calories,
        protein=args.protein,
        carbs=args.carbs,
        fat=args.fat,
        serving_size=args.serving_size,
        serving_unit=args.serving_unit,
    )
    new_id = FoodDao(store).insert(food)
    print(f"added food {new_id}: {food.name}")


def cmd_foods(store, args):
    dao = FoodDao(store)
    rows = dao.search(args.query).fetch() if args.query else dao.get_all().fetch()
    for f in rows:
        print(f"{f.id:>5}  {f.name:<30} {f.calories:>5} kcal / {f.serving_size:g} {f.serving_unit}")


def cmd_log(store, args):
    food = FoodDao(store).get_by_id(args.food_id)
    if food is None:
        raise SystemExit(f"no food with id {args.food_id}")
    ts = dt.datetime.fromisoformat(args.at) if args.at else None
    entry = diary_svc.log_food(FoodEntryDao(store), food, args.servings, args.meal, ts)
    print(f"logged entry {entry.id}: {entry.food_name} x{entry.servings:g} = {entry.calories} kcal")


def cmd_day(store, args):
    day = dt.date.fromisoformat(args.date) if args.date else dt.date.today()
    entries = FoodEntryDao(store)
    for e in entries.get_by_date(day).fetch():
        print(f"{e.timestamp:%H:%M}  {e.meal_type:<10} {e.food_name:<30} {e.calories:>5} kcal")
    totals = diary_svc.daily_totals(entries, day)
    t = totals.total
    print(f"total {t.calories} kcal  P {t.protein:g} g  C {t.carbs:g} g  F {t.fat:g} g")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="foodlog", description="Food diary (SQLite)")
    parser.add_argument("--db", default=None, help="database path (overrides config)")
    parser.add_argument("--config", default=None, help="config.yaml path")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="create or validate the database")
    p_init.set_defaults(func=cmd_init)

    p_add = sub.add_parser("add-food", help="add a food")
    p_add.add_argument("--name", required=True)
    p_add.add_argument("--calories", required=True, type=int)
    p_add.add_argument("--protein", required=True, type=float)
    p_add.add_argument("--carbs", required=True, type=float)
    p_add.add_argument("--fat", required=True, type=float)
    p_add.add_argument("--serving-size", required=True, type=float)
    p_add.add_argument("--serving-unit", required=True)
    p_add.set_defaults(func=cmd_add_food)

    p_foods = sub.add_parser("foods", help="list or search foods")
    p_foods.add_argument("query", nargs="?")
    p_foods.set_defaults(func=cmd_foods)

    p_log = sub.add_parser("log", help="log a food entry")
    p_log.add_argument("--food-id", required=True, type=int)
    p_log.add_argument("--servings", required=True, type=float)
    p_log.add_argument("--meal", required=True, help="breakfast/lunch/dinner/snack or any tag")
    p_log.add_argument("--at", required=False, help="YYYY-MM-DDTHH:MM[:SS] (default now)")
    p_log.set_defaults(func=cmd_log)

    p_day = sub.add_parser("day", help="show a day's entries and totals")
    p_day.add_argument("--date", required=False, help="YYYY-MM-DD (default today)")
    p_day.set_defaults(func=cmd_day)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    if args.config:
        os.environ["FOODLOG_CONFIG"] = args.config
    configure_logging(args.log_level)
    try:
        with open_store(args.db) as store:
            args.func(store, args)
    except (FoodLogError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
