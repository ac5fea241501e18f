import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import User
from ..schemas import MatchMergeIn, MatchOut, RecalculationOut
from ..exceptions import RatingReplayFailed, http_problem
from ..services import (
    ReplayIntegrityError,
    UnknownRatingFormula,
    ValidationError,
    get_formula,
    merge_matches,
    recalculate_ratings,
)
from ..utils.sentry import report_replay_failure
from .auth import get_current_user
from .matches import match_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise http_problem(
            status_code=403,
            detail="forbidden",
            code="admin_forbidden",
        )
    return user


def _resolve_formula(formula_id: str | None):
    try:
        return get_formula(formula_id)
    except UnknownRatingFormula:
        raise http_problem(
            status_code=422,
            detail=f"unknown rating formula '{formula_id}'",
            code="rating_formula_unknown",
        )


@router.post("/ratings/recalculate", response_model=RecalculationOut)
async def recalculate_ratings_route(
    formula: str | None = Query(None),
    dryRun: bool = False,
    session: AsyncSession = Depends(get_session),
    _: User = Depends(require_admin),
) -> RecalculationOut:
    rating_formula = _resolve_formula(formula)
    try:
        result = await recalculate_ratings(session, rating_formula, dry_run=dryRun)
    except ReplayIntegrityError as exc:
        logger.error("Rating recalculation aborted: %s", exc)
        report_replay_failure(exc, rating_formula.formula_id)
        raise RatingReplayFailed(str(exc))
    return RecalculationOut(
        formula=result.formula_id,
        players=len(result.ratings),
        matches=len(result.snapshots),
        dryRun=dryRun,
    )


@router.post("/matches/merge", response_model=MatchOut)
async def merge_matches_route(
    body: MatchMergeIn,
    session: AsyncSession = Depends(get_session),
    _: User = Depends(require_admin),
) -> MatchOut:
    rating_formula = _resolve_formula(body.formula)
    try:
        merged = await merge_matches(session, body.matchIds, rating_formula)
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=str(exc),
            code="match_merge_invalid",
        )
    except ReplayIntegrityError as exc:
        logger.error("Match merge aborted: %s", exc)
        report_replay_failure(exc, rating_formula.formula_id)
        raise RatingReplayFailed(str(exc))
    return await match_out(session, merged)
