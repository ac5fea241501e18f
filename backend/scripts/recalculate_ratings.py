#!/usr/bin/env python3
"""Replay the full match history and rewrite every rating."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pingpong import db
from pingpong.services import (
    FORMULAS,
    ReplayIntegrityError,
    get_formula,
    recalculate_ratings,
)
from pingpong.models import Player


async def run(formula_id: str | None, dry_run: bool) -> int:
    formula = get_formula(formula_id)
    db.get_engine()
    try:
        async with db.AsyncSessionLocal() as session:
            names = {
                p.id: p.name
                for p in (await session.execute(Player.__table__.select())).all()
            }
            try:
                result = await recalculate_ratings(session, formula, dry_run=dry_run)
            except ReplayIntegrityError as exc:
                print(f"Recalculation aborted, nothing written: {exc}", file=sys.stderr)
                return 1
    finally:
        await db.dispose_engine()

    print(
        f"{'Dry run' if dry_run else 'Recalculated'}: {len(result.snapshots)} match(es), "
        f"{len(result.ratings)} player(s), formula {result.formula_id}"
    )
    leaderboard = sorted(result.ratings.items(), key=lambda kv: (-kv[1], names.get(kv[0], "")))
    for rank, (pid, rating) in enumerate(leaderboard, start=1):
        tally = result.stats[pid]
        print(
            f"{rank:>3}. {names.get(pid, pid):<30} {rating:>7.1f}  "
            f"{tally.wins}-{tally.losses}"
        )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Recompute all player ratings by replaying every match in order."
    )
    parser.add_argument(
        "--formula",
        choices=sorted(FORMULAS),
        help="Rating formula to replay with (defaults to RATING_FORMULA).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resulting leaderboard without writing it to the database.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(run(args.formula, args.dry_run)))


if __name__ == "__main__":
    main()
