# backend/pingpong/routers/matches.py
import logging
from typing import Iterable

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import MAX_POINTS_PER_SET, MAX_SETS_PER_MATCH
from ..db import get_session
from ..models import Match, Player, User
from ..schemas import (
    MatchCreate,
    MatchListOut,
    MatchOut,
    PlayerNameOut,
    SetScore,
)
from ..services.validation import (
    ValidationError,
    normalize_sets,
    validate_participants,
    validate_set_scores,
    determine_winner_side,
)
from ..services.replay import parse_stored_sets
from ..services import record_match
from ..exceptions import MatchNotFound, PlayerNotFound, http_problem
from ..time_utils import coerce_utc
from .auth import get_current_user, limiter, match_rate_limit

logger = logging.getLogger(__name__)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


async def _player_names(session: AsyncSession, ids: Iterable[str]) -> dict[str, str]:
    ids = {pid for pid in ids if pid}
    if not ids:
        return {}
    rows = (
        await session.execute(select(Player.id, Player.name).where(Player.id.in_(ids)))
    ).all()
    return {pid: name for pid, name in rows}


async def match_out(
    session: AsyncSession, m: Match, names: dict[str, str] | None = None
) -> MatchOut:
    if names is None:
        names = await _player_names(session, [m.player1_id, m.player2_id])
    return MatchOut(
        id=m.id,
        player1=PlayerNameOut(id=m.player1_id, name=names.get(m.player1_id, "Unknown")),
        player2=PlayerNameOut(id=m.player2_id, name=names.get(m.player2_id, "Unknown")),
        winnerId=m.winner_id,
        player1SetsWon=m.player1_sets_won,
        player2SetsWon=m.player2_sets_won,
        sets=[SetScore(A=a, B=b) for a, b in parse_stored_sets(m.sets)],
        player1RatingBefore=m.player1_rating_before,
        player2RatingBefore=m.player2_rating_before,
        player1RatingAfter=m.player1_rating_after,
        player2RatingAfter=m.player2_rating_after,
        ratingChange=m.rating_change,
        ratingFormula=m.rating_formula,
        playedAt=coerce_utc(m.played_at),
    )


# GET /api/v0/matches
@router.get("", response_model=MatchListOut)
async def list_matches(
    playerId: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    base_stmt = select(Match)
    if playerId:
        base_stmt = base_stmt.where(
            or_(Match.player1_id == playerId, Match.player2_id == playerId)
        )

    total = (
        await session.execute(select(func.count()).select_from(base_stmt.subquery()))
    ).scalar_one()

    stmt = (
        base_stmt.order_by(
            Match.played_at.desc(), Match.created_at.desc(), Match.id.desc()
        )
        .offset(offset)
        .limit(limit)
    )
    matches = (await session.execute(stmt)).scalars().all()
    names = await _player_names(
        session, [pid for m in matches for pid in (m.player1_id, m.player2_id)]
    )
    return MatchListOut(
        matches=[await match_out(session, m, names) for m in matches],
        total=total,
        limit=limit,
        offset=offset,
    )


# GET /api/v0/matches/{mid}
@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: str, session: AsyncSession = Depends(get_session)):
    m = await session.get(Match, mid)
    if not m:
        raise MatchNotFound(mid)
    return await match_out(session, m)


# POST /api/v0/matches
async def create_match(
    body: MatchCreate,
    session: AsyncSession,
    user: User,
) -> MatchOut:
    try:
        validate_participants(body.player1Id, body.player2Id)
    except ValidationError as exc:
        raise http_problem(
            status_code=400,
            detail=str(exc),
            code="match_duplicate_players",
        )

    try:
        set_pairs = validate_set_scores(
            normalize_sets(body.sets),
            max_sets=MAX_SETS_PER_MATCH,
            max_points_per_side=MAX_POINTS_PER_SET,
        )
        determine_winner_side(set_pairs)
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=str(exc),
            code="match_validation_error",
        )

    # Columns only; record_match re-reads the player rows under the lock.
    owners = dict(
        (
            await session.execute(
                select(Player.id, Player.user_id).where(
                    Player.id.in_([body.player1Id, body.player2Id])
                )
            )
        ).all()
    )
    for pid in (body.player1Id, body.player2Id):
        if pid not in owners:
            raise PlayerNotFound(pid)

    if not user.is_admin:
        if user.id not in owners.values():
            raise http_problem(
                status_code=403,
                detail="you can only record matches you played in",
                code="match_forbidden",
            )

    match = await record_match(
        session,
        body.player1Id,
        body.player2Id,
        set_pairs,
        played_at=body.playedAt,
    )
    logger.info(
        "Recorded match %s: %s beat %s (%+.1f)",
        match.id,
        match.winner_id,
        match.player2_id if match.winner_id == match.player1_id else match.player1_id,
        match.rating_change,
    )
    return await match_out(session, match)


@router.post("", response_model=MatchOut, status_code=201)
@limiter.limit(match_rate_limit)
async def create_match_route(
    request: Request,
    body: MatchCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> MatchOut:
    return await create_match(body, session, user)
