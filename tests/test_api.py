from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from rhythm.dependencies import get_flag_store
from rhythm.flag_store import InMemoryFlagStore
from rhythm.main import app

from .event_helpers import BASE_DAY

client = TestClient(app)


@pytest.fixture(autouse=True)
def flag_store():
    store = InMemoryFlagStore()
    app.dependency_overrides[get_flag_store] = lambda: store
    yield store
    app.dependency_overrides.clear()


def bedtime_payload(days: int = 10) -> List[Dict]:
    events = []
    for offset in range(days, 0, -1):
        day: date = BASE_DAY - timedelta(days=offset)
        events.append(
            {
                "id": f"night-{offset}",
                "kind": "nap",
                "loggedAt": f"{day.isoformat()}T21:00:00+00:00",
                "attributes": {"startTime": "7:30 PM", "endTime": "6:30 AM"},
            }
        )
    return events


def test_health() -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_patterns_endpoint() -> None:
    resp = client.post(
        "/api/v1/patterns",
        json={"events": bedtime_payload(), "now": f"{BASE_DAY.isoformat()}T21:00:00+00:00"},
    )
    assert resp.status_code == 200
    patterns = resp.json()["patterns"]
    assert patterns["nap.bedtime"]["statistics"]["median_minutes"] == 1170
    assert patterns["nap.bedtime"]["confidence_label"] == "high"
    assert patterns["feed.any"]["statistics"] is None


def test_next_suggestion_then_dismiss() -> None:
    body = {
        "events": bedtime_payload(),
        "now": f"{BASE_DAY.isoformat()}T21:00:00+00:00",
        "household_id": "house-1",
        "baby_name": "Noah",
    }
    resp = client.post("/api/v1/suggestions/next", json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data["suggestion"]["message"] == "Did Noah go to bed around 7:30 PM?"
    assert [item["state"] for item in data["evaluations"]][0] == "suggested"

    resp = client.post(
        "/api/v1/suggestions/dismiss",
        json={"household_id": "house-1", "sub_pattern": "nap.bedtime", "now": body["now"]},
    )
    assert resp.status_code == 200
    assert resp.json()["key"] == f"dismissed:house-1:nap:bedtime:{BASE_DAY.isoformat()}"

    resp = client.post("/api/v1/suggestions/next", json=body)
    assert resp.json()["suggestion"] is None
    assert resp.json()["evaluations"][0]["state"] == "dismissed"


def test_accept_endpoint(flag_store: InMemoryFlagStore) -> None:
    resp = client.post(
        "/api/v1/suggestions/accept",
        json={"household_id": "house-1", "sub_pattern": "feed.any", "now": f"{BASE_DAY.isoformat()}T14:45:00+00:00"},
    )
    assert resp.status_code == 200
    assert resp.json()["key"] == f"accepted:house-1:feed:default:{BASE_DAY.isoformat()}-14:45"
    assert flag_store.keys() == [resp.json()["key"]]


def test_invalid_household_rejected() -> None:
    resp = client.post("/api/v1/suggestions/next", json={"household_id": "a:b", "events": []})
    assert resp.status_code == 400


def test_invalid_timezone_override_rejected() -> None:
    resp = client.post("/api/v1/patterns", json={"events": [], "timezone": "Nowhere/Special"})
    assert resp.status_code == 400


def test_schedule_prediction_endpoint() -> None:
    resp = client.post(
        "/api/v1/schedule/predict",
        json={"events": [], "age_weeks": 30, "now": f"{BASE_DAY.isoformat()}T12:00:00+00:00"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["nap_count_today"] == 2
    assert data["confidence"] == "medium"


def test_schedule_prediction_without_age() -> None:
    resp = client.post("/api/v1/schedule/predict", json={"events": []})
    assert resp.status_code == 200
    assert resp.json()["confidence"] == "low"


def test_transition_endpoints() -> None:
    resp = client.post("/api/v1/transitions/detect", json={"daily_nap_counts": [3, 3, 3, 2, 2, 2]})
    assert resp.json()["note"] == "Moving from 3 to 2 naps"

    resp = client.post(
        "/api/v1/transitions/validate",
        json={"daily_nap_counts": [2, 3, 2, 3, 2], "text": "Moving from 4 to 3 naps"},
    )
    assert resp.status_code == 200
    assert resp.json()["accepted"] is False
    assert resp.json()["statement"] == "Stabilizing between 2–3 naps"

    resp = client.post("/api/v1/transitions/validate", json={"daily_nap_counts": [2], "text": "steady naps"})
    assert resp.status_code == 400


def test_next_action_endpoint() -> None:
    day = BASE_DAY.isoformat()
    resp = client.post(
        "/api/v1/next-action",
        json={
            "events": [
                {
                    "id": "feed-1",
                    "kind": "feed",
                    "loggedAt": f"{day}T10:00:00+00:00",
                    "attributes": {"startTime": "10:00 AM"},
                },
                {
                    "id": "nap-1",
                    "kind": "nap",
                    "loggedAt": f"{day}T13:00:00+00:00",
                    "attributes": {"startTime": "12:00 PM", "endTime": "1:15 PM"},
                },
            ],
            "age_weeks": 30,
            "now": f"{day}T14:00:00+00:00",
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["intent"] == "FEED_SOON"
    assert data["reevaluate_in_minutes"] == 45
    assert data["day_progress"]["feeds_today"] == 1


def test_next_action_with_empty_log() -> None:
    resp = client.post("/api/v1/next-action", json={"events": []})
    assert resp.status_code == 200
    assert resp.json()["intent"] == "HOLD"


def test_insights_compare_endpoint() -> None:
    day = BASE_DAY.isoformat()
    yesterday = (BASE_DAY - timedelta(days=1)).isoformat()
    events = [
        {"id": "f1", "kind": "feed", "loggedAt": f"{day}T08:00:00+00:00", "attributes": {}},
        {"id": "f2", "kind": "feed", "loggedAt": f"{day}T12:00:00+00:00", "attributes": {}},
        {"id": "f3", "kind": "feed", "loggedAt": f"{yesterday}T08:00:00+00:00", "attributes": {}},
    ]
    resp = client.post(
        "/api/v1/insights/compare",
        json={"events": events, "now": f"{day}T20:00:00+00:00"},
    )
    assert resp.status_code == 200
    assert resp.json()["metrics"]["count_feed"] == {"current": 2, "baseline": 1, "delta": 1}


def test_insights_expected_endpoint() -> None:
    day = BASE_DAY.isoformat()
    events = [
        {"id": f"n{index}", "kind": "nap", "loggedAt": f"{day}T{hour:02d}:00:00+00:00", "attributes": {}}
        for index, hour in enumerate(range(8, 16))
    ]
    resp = client.post(
        "/api/v1/insights/expected",
        json={"events": events, "age_weeks": 14, "now": f"{day}T18:00:00+00:00"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["observed"]["count_nap"] == 8
    assert data["ranges"]["naps_per_day"] == [3, 4]
    assert data["risks"]
    assert data["nap_statistics"]["total_naps"] == 8


def test_insights_expected_requires_age() -> None:
    resp = client.post("/api/v1/insights/expected", json={"events": []})
    assert resp.status_code == 400
