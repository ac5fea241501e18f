"""Persisting rating updates: incremental match recording and full recalculation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import PlayerNotFound
from ..models import Match, Player
from ..time_utils import coerce_utc, utcnow
from .rating import FORMULAS, RatingFormula, compute_rating_change, get_formula
from .replay import ReplayMatch, ReplayResult, chronological_key, replay
from .validation import determine_winner_side, sets_won, validate_participants

logger = logging.getLogger(__name__)

# Serializes rating read-modify-write inside this process. Row locks
# (SELECT ... FOR UPDATE) cover concurrent writers in other processes.
ratings_lock = asyncio.Lock()


async def replay_into_session(
    session: AsyncSession, formula: RatingFormula
) -> ReplayResult:
    """Replay the whole match log and stage the results on ``session``.

    Nothing is committed here. The pure replay runs before any row is
    modified, so an integrity fault leaves the session untouched.
    """
    players = (
        await session.execute(
            select(Player)
            .order_by(Player.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    matches = (
        await session.execute(
            select(Match)
            .order_by(Match.played_at, Match.created_at, Match.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    ordered = sorted(matches, key=chronological_key)

    result = replay(
        [
            ReplayMatch(
                id=m.id,
                player1_id=m.player1_id,
                player2_id=m.player2_id,
                winner_id=m.winner_id,
                sets=m.sets,
                played_at=m.played_at,
                created_at=m.created_at,
            )
            for m in ordered
        ],
        [p.id for p in players],
        formula,
    )

    for m in ordered:
        snapshot = result.snapshots[m.id]
        m.player1_rating_before = snapshot.player1_before
        m.player2_rating_before = snapshot.player2_before
        m.player1_rating_after = snapshot.player1_after
        m.player2_rating_after = snapshot.player2_after
        m.rating_change = snapshot.rating_change
        m.rating_formula = result.formula_id

    for p in players:
        tally = result.stats[p.id]
        p.rating = result.ratings[p.id]
        p.games_played = tally.played
        p.wins = tally.wins
        p.losses = tally.losses

    return result


async def recalculate_ratings(
    session: AsyncSession,
    formula: RatingFormula | None = None,
    *,
    dry_run: bool = False,
) -> ReplayResult:
    """Recompute every rating, counter and match snapshot from scratch.

    All changes are committed together. On any error, or when ``dry_run`` is
    set, the transaction is rolled back and stored state is left as it was.
    """
    formula = formula or get_formula()
    async with ratings_lock:
        try:
            result = await replay_into_session(session, formula)
            if dry_run:
                await session.rollback()
            else:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
    logger.info(
        "Recalculated ratings for %d player(s) over %d match(es) using %s%s",
        len(result.ratings),
        len(result.snapshots),
        result.formula_id,
        " (dry run)" if dry_run else "",
    )
    return result


async def _history_formula(
    session: AsyncSession, default: RatingFormula
) -> RatingFormula:
    """Formula most stored snapshots were produced with, else ``default``."""
    row = (
        await session.execute(
            select(Match.rating_formula, func.count())
            .group_by(Match.rating_formula)
            .order_by(func.count().desc(), Match.rating_formula)
            .limit(1)
        )
    ).first()
    if row is None or row[0] not in FORMULAS:
        return default
    formula = FORMULAS[row[0]]
    if formula is not default:
        logger.warning(
            "Stored history uses %s, not the configured %s; replaying under %s",
            formula.formula_id,
            default.formula_id,
            formula.formula_id,
        )
    return formula


async def record_match(
    session: AsyncSession,
    player1_id: str,
    player2_id: str,
    set_pairs: Sequence[tuple[int, int]],
    *,
    played_at: datetime | None = None,
    formula: RatingFormula | None = None,
) -> Match:
    """Store a validated match and apply its rating change.

    ``set_pairs`` hold ``(player1 points, player2 points)``. A match played
    before the latest recorded one triggers a full replay inside the same
    transaction so ratings keep following chronological order. Unless
    ``formula`` is given, that replay keeps the formula most of the stored
    history uses.
    """
    validate_participants(player1_id, player2_id)
    winner_side = determine_winner_side(set_pairs)
    explicit_formula = formula is not None
    formula = formula or get_formula()

    async with ratings_lock:
        # taken under the lock so insertion order follows lock order
        now = utcnow()
        played_at = coerce_utc(played_at) or now
        try:
            rows = (
                await session.execute(
                    select(Player)
                    .where(Player.id.in_([player1_id, player2_id]))
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalars().all()
            by_id = {p.id: p for p in rows}
            for pid in (player1_id, player2_id):
                if pid not in by_id:
                    raise PlayerNotFound(pid)
            p1, p2 = by_id[player1_id], by_id[player2_id]

            latest = (
                await session.execute(select(func.max(Match.played_at)))
            ).scalar_one_or_none()
            backdated = latest is not None and played_at < coerce_utc(latest)
            replay_formula = formula
            if backdated and not explicit_formula:
                replay_formula = await _history_formula(session, formula)

            winner, loser = (p1, p2) if winner_side == "A" else (p2, p1)
            change = compute_rating_change(
                winner.rating, loser.rating, set_pairs, formula
            )
            if winner is p1:
                p1_after, p2_after = change.winner_new_rating, change.loser_new_rating
            else:
                p1_after, p2_after = change.loser_new_rating, change.winner_new_rating
            won1, won2 = sets_won(set_pairs)

            match = Match(
                id=uuid.uuid4().hex,
                player1_id=p1.id,
                player2_id=p2.id,
                winner_id=winner.id,
                player1_sets_won=won1,
                player2_sets_won=won2,
                sets=[{"A": a, "B": b} for a, b in set_pairs],
                player1_rating_before=p1.rating,
                player2_rating_before=p2.rating,
                player1_rating_after=p1_after,
                player2_rating_after=p2_after,
                rating_change=change.delta,
                rating_formula=formula.formula_id,
                played_at=played_at,
                created_at=now,
            )
            session.add(match)

            p1.rating = p1_after
            p2.rating = p2_after
            p1.games_played += 1
            p2.games_played += 1
            winner.wins += 1
            loser.losses += 1

            if backdated:
                logger.info(
                    "Match %s predates the latest recorded match; replaying history",
                    match.id,
                )
                await session.flush()
                await replay_into_session(session, replay_formula)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return match
