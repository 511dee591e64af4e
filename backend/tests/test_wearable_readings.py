from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from erprana_store.time_utils import period_start, shift_months


def _iso(days_ago: float) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat()


def test_post_and_list_readings_newest_first(client):
    first = client.post(
        "/api/user/user-a/wearable-readings",
        json={"recordedAt": _iso(2), "heartRate": 72, "steps": 8000, "deviceType": "watch"},
    )
    assert first.status_code == 201
    body = first.json()
    assert body["userId"] == "user-a"
    assert body["heartRate"] == 72
    assert body["bloodOxygenSaturation"] is None

    second = client.post(
        "/api/user/user-a/wearable-readings",
        json={"recordedAt": _iso(1), "heartRate": 110, "afibDetected": True, "bloodOxygenSaturation": 96.5},
    ).json()
    assert second["afibDetected"] is True
    assert second["bloodOxygenSaturation"] == 96.5

    listed = client.get("/api/user/user-a/wearable-readings").json()
    assert [row["heartRate"] for row in listed] == [110, 72]
    assert client.get("/api/user/user-b/wearable-readings").json() == []


def test_limit_and_period_filters(client):
    for days_ago, heart_rate in ((40, 60), (10, 65), (3, 70), (0.01, 75)):
        client.post(
            "/api/user/user-a/wearable-readings",
            json={"recordedAt": _iso(days_ago), "heartRate": heart_rate},
        )

    limited = client.get("/api/user/user-a/wearable-readings", params={"limit": 2}).json()
    assert [row["heartRate"] for row in limited] == [75, 70]

    month = client.get("/api/user/user-a/wearable-readings", params={"period": "month"}).json()
    assert [row["heartRate"] for row in month] == [75, 70, 65]

    week = client.get("/api/user/user-a/wearable-readings", params={"period": "week"}).json()
    assert [row["heartRate"] for row in week] == [75, 70]


@pytest.mark.parametrize(
    "params",
    [{"period": "decade"}, {"limit": 0}, {"limit": 501}],
)
def test_invalid_listing_params_are_rejected(client, params):
    response = client.get("/api/user/user-a/wearable-readings", params=params)
    assert response.status_code == 400
    assert "error" in response.json()


def test_period_start_windows():
    now = datetime(2024, 3, 31, 15, 30, tzinfo=timezone.utc)
    assert period_start("day", now) == datetime(2024, 3, 31, tzinfo=timezone.utc)
    assert period_start("week", now) == datetime(2024, 3, 24, 15, 30, tzinfo=timezone.utc)
    assert period_start("month", now) == datetime(2024, 2, 29, 15, 30, tzinfo=timezone.utc)
    assert period_start("quarter", now) == datetime(2023, 12, 31, 15, 30, tzinfo=timezone.utc)
    assert period_start("year", now) == datetime(2023, 3, 31, 15, 30, tzinfo=timezone.utc)
    assert shift_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)


def test_non_numeric_limit_and_bad_body_get_error_body(client):
    response = client.get("/api/user/user-a/wearable-readings", params={"limit": "abc"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}

    response = client.post("/api/user/user-a/wearable-readings", json={"heartRate": "fast"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}
