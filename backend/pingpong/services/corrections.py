"""Administrative corrections to the match log."""

from __future__ import annotations

import logging
import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import MatchNotFound
from ..models import Match
from .rating import RatingFormula, get_formula
from .recording import ratings_lock, replay_into_session
from .replay import chronological_key, parse_stored_sets
from .validation import ValidationError, determine_winner_side, sets_won

logger = logging.getLogger(__name__)


async def merge_matches(
    session: AsyncSession,
    match_ids: Sequence[str],
    formula: RatingFormula | None = None,
) -> Match:
    """Merge separately recorded matches into one multi-set match.

    All matches must be between the same two players. Sets are concatenated
    in chronological order and oriented to the earliest match's player order;
    the merged match takes the earliest match's timestamps. The whole history
    is then replayed and everything is committed at once.
    """
    ids = list(dict.fromkeys(match_ids))
    if len(ids) < 2:
        raise ValidationError("At least two distinct matches are required to merge.")
    formula = formula or get_formula()

    async with ratings_lock:
        try:
            rows = (
                await session.execute(
                    select(Match).where(Match.id.in_(ids)).with_for_update()
                )
            ).scalars().all()
            missing = sorted(set(ids) - {m.id for m in rows})
            if missing:
                raise MatchNotFound(missing[0])

            ordered = sorted(rows, key=chronological_key)
            first = ordered[0]
            pair = {first.player1_id, first.player2_id}
            merged_pairs: list[tuple[int, int]] = []
            for m in ordered:
                if {m.player1_id, m.player2_id} != pair:
                    raise ValidationError(
                        "Only matches between the same two players can be merged."
                    )
                pairs = parse_stored_sets(m.sets)
                if not pairs:
                    raise ValidationError(f"Match '{m.id}' has no set scores to merge.")
                if m.player1_id == first.player1_id:
                    merged_pairs.extend(pairs)
                else:
                    merged_pairs.extend((b, a) for a, b in pairs)

            winner_side = determine_winner_side(merged_pairs)
            won1, won2 = sets_won(merged_pairs)

            merged = Match(
                id=uuid.uuid4().hex,
                player1_id=first.player1_id,
                player2_id=first.player2_id,
                winner_id=first.player1_id if winner_side == "A" else first.player2_id,
                player1_sets_won=won1,
                player2_sets_won=won2,
                sets=[{"A": a, "B": b} for a, b in merged_pairs],
                # placeholders until the replay below fills the snapshot
                player1_rating_before=first.player1_rating_before,
                player2_rating_before=first.player2_rating_before,
                player1_rating_after=first.player1_rating_before,
                player2_rating_after=first.player2_rating_before,
                rating_change=0.0,
                rating_formula=formula.formula_id,
                played_at=first.played_at,
                created_at=first.created_at,
            )
            for m in ordered:
                await session.delete(m)
            session.add(merged)
            await session.flush()

            await replay_into_session(session, formula)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Merged %d match(es) into %s with %d set(s) (%d-%d)",
        len(ordered),
        merged.id,
        len(merged_pairs),
        won1,
        won2,
    )
    return merged
