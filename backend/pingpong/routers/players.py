import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Player, Match, User
from ..schemas import (
    PlayerCreate,
    PlayerOut,
    PlayerListOut,
    PlayerStatsOut,
    HeadToHeadOut,
    StreakSummary,
    RatingHistoryPoint,
)
from ..exceptions import ProblemDetail, PlayerAlreadyExists, PlayerNotFound
from ..services import (
    compute_streaks,
    get_formula,
    head_to_head,
    rating_extremes,
    rolling_win_percentage,
    win_rate,
)
from ..services.replay import chronological_key
from ..time_utils import coerce_utc, utcnow
from .auth import get_current_user

logger = logging.getLogger(__name__)

STREAK_WINDOW = 20

router = APIRouter(
    prefix="/players",
    tags=["players"],
    responses={400: {"model": ProblemDetail}, 404: {"model": ProblemDetail}},
)


def player_out(p: Player) -> PlayerOut:
    return PlayerOut(
        id=p.id,
        name=p.name,
        rating=p.rating,
        games_played=p.games_played,
        wins=p.wins,
        losses=p.losses,
        win_rate=win_rate(p.wins, p.games_played),
        created_at=coerce_utc(p.created_at),
    )


async def _get_player(session: AsyncSession, player_id: str) -> Player:
    p = await session.get(Player, player_id)
    if not p:
        raise PlayerNotFound(player_id)
    return p


async def _matches_for(session: AsyncSession, player_id: str) -> list[Match]:
    """All matches involving ``player_id`` in replay order."""
    rows = (
        await session.execute(
            select(Match).where(
                or_(Match.player1_id == player_id, Match.player2_id == player_id)
            )
        )
    ).scalars().all()
    return sorted(rows, key=chronological_key)


@router.post("", response_model=PlayerOut, status_code=201)
async def create_player(
    body: PlayerCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    exists = (
        await session.execute(
            select(Player.id).where(func.lower(Player.name) == body.name.lower())
        )
    ).scalar_one_or_none()
    if exists:
        raise PlayerAlreadyExists(body.name)

    p = Player(
        id=uuid.uuid4().hex,
        user_id=None if user.is_admin else user.id,
        name=body.name,
        rating=get_formula().initial_rating,
        games_played=0,
        wins=0,
        losses=0,
        created_at=utcnow(),
    )
    session.add(p)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise PlayerAlreadyExists(body.name)
    logger.info("Created player %s (%s)", p.id, p.name)
    return player_out(p)


@router.get("", response_model=PlayerListOut)
async def list_players(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    total = (await session.execute(select(func.count()).select_from(Player))).scalar()
    stmt = (
        select(Player)
        .order_by(Player.rating.desc(), Player.name)
        .limit(limit)
        .offset(offset)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return PlayerListOut(
        players=[player_out(p) for p in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{player_id}", response_model=PlayerOut)
async def get_player(player_id: str, session: AsyncSession = Depends(get_session)):
    return player_out(await _get_player(session, player_id))


@router.get("/{player_id}/stats", response_model=PlayerStatsOut)
async def player_stats(
    player_id: str,
    span: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    player = await _get_player(session, player_id)
    matches = await _matches_for(session, player_id)

    results = [m.winner_id == player_id for m in matches]
    longest = compute_streaks(results)
    recent = compute_streaks(results[-STREAK_WINDOW:])
    current = recent["current"]
    streak = StreakSummary(
        current=abs(current),
        type="win" if current > 0 else "loss" if current < 0 else None,
        longestWin=longest["longestWin"],
        longestLoss=longest["longestLoss"],
    )

    gain, loss = rating_extremes(player_id, matches)

    opponent_ids = {
        m.player2_id if m.player1_id == player_id else m.player1_id for m in matches
    }
    names: dict[str, str] = {}
    if opponent_ids:
        rows = (
            await session.execute(
                select(Player.id, Player.name).where(Player.id.in_(opponent_ids))
            )
        ).all()
        names = {pid: name for pid, name in rows}

    return PlayerStatsOut(
        player=player_out(player),
        biggestGain=gain,
        biggestLoss=loss,
        streak=streak,
        rollingWinPct=rolling_win_percentage(results, span),
        headToHead=[HeadToHeadOut(**r) for r in head_to_head(player_id, matches, names)],
    )


@router.get("/{player_id}/rating-history", response_model=list[RatingHistoryPoint])
async def rating_history(player_id: str, session: AsyncSession = Depends(get_session)):
    player = await _get_player(session, player_id)
    matches = await _matches_for(session, player_id)

    if matches:
        first = matches[0]
        start = (
            first.player1_rating_before
            if first.player1_id == player_id
            else first.player2_rating_before
        )
    else:
        start = player.rating

    points = [
        RatingHistoryPoint(
            matchId=None,
            playedAt=coerce_utc(player.created_at),
            rating=start,
            result="start",
        )
    ]
    for m in matches:
        after = (
            m.player1_rating_after if m.player1_id == player_id else m.player2_rating_after
        )
        points.append(
            RatingHistoryPoint(
                matchId=m.id,
                playedAt=coerce_utc(m.played_at),
                rating=after,
                result="win" if m.winner_id == player_id else "loss",
            )
        )
    return points
