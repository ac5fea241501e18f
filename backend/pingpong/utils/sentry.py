import logging
import os

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from ..config import RATING_FORMULA

logger = logging.getLogger(__name__)


def parse_sample_rate(env_var: str, default: float = 0.0) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None:
        return default

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid float (got %r); defaulting to %.2f",
            env_var,
            raw_value,
            default,
        )
        return default

    if not 0 <= value <= 1:
        logger.warning("%s must be within [0, 1]; defaulting to %.2f", env_var, default)
        return default

    return value


def init_sentry() -> bool:
    """Initialise error reporting from ``SENTRY_*``; ``False`` when disabled."""
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    environment = (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        environment=environment,
        release=(os.getenv("SENTRY_RELEASE") or "").strip() or None,
        traces_sample_rate=parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
        profiles_sample_rate=parse_sample_rate("SENTRY_PROFILES_SAMPLE_RATE"),
    )
    sentry_sdk.set_tag("rating_formula", RATING_FORMULA)
    logger.info(
        "Initialized Sentry%s",
        f" (environment={environment})" if environment else "",
    )
    return True


def report_replay_failure(exc: Exception, formula_id: str) -> None:
    """Send an aborted rating replay to Sentry; a no-op when it is not set up."""
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("rating_formula", formula_id)
        scope.set_context(
            "replay",
            {
                "match_id": getattr(exc, "match_id", None),
                "player_id": getattr(exc, "player_id", None),
            },
        )
        sentry_sdk.capture_exception(exc)
