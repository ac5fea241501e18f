"""Replay every match under the set- and margin-weighted formula.

Ratings stored before this revision were produced by the flat K=32 update.
The replay is deterministic, so running it again yields the same values.
"""

import logging

from alembic import op
import sqlalchemy as sa

from pingpong.services.rating import CLASSIC_V1, SETS_MARGIN_V3
from pingpong.services.replay import ReplayMatch, chronological_key, replay

revision = "0002_recalculate_ratings_sets_margin"
down_revision = "0001_initial"
branch_labels = None
depends_on = None

logger = logging.getLogger("alembic.runtime.migration")

player = sa.table(
    "player",
    sa.column("id", sa.String),
    sa.column("rating", sa.Float),
    sa.column("games_played", sa.Integer),
    sa.column("wins", sa.Integer),
    sa.column("losses", sa.Integer),
)
match = sa.table(
    "match",
    sa.column("id", sa.String),
    sa.column("player1_id", sa.String),
    sa.column("player2_id", sa.String),
    sa.column("winner_id", sa.String),
    sa.column("sets", sa.JSON),
    sa.column("player1_rating_before", sa.Float),
    sa.column("player2_rating_before", sa.Float),
    sa.column("player1_rating_after", sa.Float),
    sa.column("player2_rating_after", sa.Float),
    sa.column("rating_change", sa.Float),
    sa.column("rating_formula", sa.String),
    sa.column("played_at", sa.DateTime(timezone=True)),
    sa.column("created_at", sa.DateTime(timezone=True)),
)


def _apply(formula):
    bind = op.get_bind()
    player_ids = [row.id for row in bind.execute(sa.select(player.c.id))]
    rows = bind.execute(
        sa.select(
            match.c.id,
            match.c.player1_id,
            match.c.player2_id,
            match.c.winner_id,
            match.c.sets,
            match.c.played_at,
            match.c.created_at,
        )
    ).all()
    history = sorted(
        (
            ReplayMatch(
                id=r.id,
                player1_id=r.player1_id,
                player2_id=r.player2_id,
                winner_id=r.winner_id,
                sets=r.sets,
                played_at=r.played_at,
                created_at=r.created_at,
            )
            for r in rows
        ),
        key=chronological_key,
    )

    # Raises before any row is written if the history is inconsistent.
    result = replay(history, player_ids, formula)

    for match_id, snap in result.snapshots.items():
        bind.execute(
            match.update()
            .where(match.c.id == match_id)
            .values(
                player1_rating_before=snap.player1_before,
                player2_rating_before=snap.player2_before,
                player1_rating_after=snap.player1_after,
                player2_rating_after=snap.player2_after,
                rating_change=snap.rating_change,
                rating_formula=result.formula_id,
            )
        )
    for pid in player_ids:
        tally = result.stats[pid]
        bind.execute(
            player.update()
            .where(player.c.id == pid)
            .values(
                rating=result.ratings[pid],
                games_played=tally.played,
                wins=tally.wins,
                losses=tally.losses,
            )
        )
    logger.info(
        "Replayed %d match(es) for %d player(s) under %s",
        len(result.snapshots),
        len(player_ids),
        result.formula_id,
    )


def upgrade():
    _apply(SETS_MARGIN_V3)


def downgrade():
    _apply(CLASSIC_V1)
