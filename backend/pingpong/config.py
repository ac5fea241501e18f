import logging
import os

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _positive_int(env_var: str, default: int) -> int:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = int(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid integer (got %r); defaulting to %d",
            env_var,
            raw_value,
            default,
        )
        return default
    if value <= 0:
        logger.warning("%s must be positive; defaulting to %d", env_var, default)
        return default
    return value


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

# Formula id used when recording matches and recalculating history.
RATING_FORMULA = (os.getenv("RATING_FORMULA") or "").strip() or "elo-sets-margin-v3"

MAX_SETS_PER_MATCH = _positive_int("MAX_SETS_PER_MATCH", 7)
MAX_POINTS_PER_SET = _positive_int("MAX_POINTS_PER_SET", 99)
