#!/usr/bin/env python3
"""Merge duplicate single-set match records into one match and replay ratings."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pingpong import db
from pingpong.exceptions import DomainException
from pingpong.services import (
    FORMULAS,
    ReplayIntegrityError,
    ValidationError,
    get_formula,
    merge_matches,
)


async def run(match_ids: list[str], formula_id: str | None) -> int:
    formula = get_formula(formula_id)
    db.get_engine()
    try:
        async with db.AsyncSessionLocal() as session:
            try:
                merged = await merge_matches(session, match_ids, formula)
            except (ValidationError, ReplayIntegrityError, DomainException) as exc:
                print(f"Merge aborted, nothing written: {exc}", file=sys.stderr)
                return 1
    finally:
        await db.dispose_engine()

    sets = ", ".join(f"{s['A']}-{s['B']}" for s in merged.sets)
    print(
        f"Merged {len(set(match_ids))} match(es) into {merged.id}: "
        f"{merged.player1_sets_won}-{merged.player2_sets_won} ({sets})"
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("match_ids", nargs="+", help="Identifiers of the matches to merge")
    parser.add_argument(
        "--formula",
        choices=sorted(FORMULAS),
        help="Rating formula for the replay (defaults to RATING_FORMULA).",
    )
    args = parser.parse_args()
    if len(set(args.match_ids)) < 2:
        parser.error("at least two distinct match ids are required")
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(run(args.match_ids, args.formula)))


if __name__ == "__main__":
    main()
