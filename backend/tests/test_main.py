from fastapi.testclient import TestClient

from pingpong.config import RATING_FORMULA
from pingpong.main import app


def test_health_endpoints_report_rating_formula():
    with TestClient(app) as client:
        assert client.get("/healthz").json() == {"status": "ok"}
        assert client.get("/api/healthz").json() == {
            "status": "ok",
            "ratingFormula": RATING_FORMULA,
        }
