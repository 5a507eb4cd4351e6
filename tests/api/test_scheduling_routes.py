from fastapi.testclient import TestClient

from shiftplan.main import app

client = TestClient(app)

BASE = "/api/v1/scheduling"


def occurrence(occ_id: str, day: int = 20, assigned: list[str] = (), **requirements) -> dict:
    return {
        "id": occ_id,
        "parent_shift_id": "shift-1",
        "name": "Day shift",
        "start": f"2025-01-{day:02d}T09:00:00",
        "end": f"2025-01-{day:02d}T17:00:00",
        "requirements": {"headcount": 1, **requirements},
        "assigned_staff_ids": list(assigned),
    }


TRAITS = [{"id": "t-first-aid", "name": "First Aid"}]

ROSTER = [
    {"id": "s1", "name": "Alice", "trait_ids": ["t-first-aid"]},
    {
        "id": "s2",
        "name": "Bob",
        "blocked_times": [{"start": "2025-01-20T00:00:00", "end": "2025-01-20T00:00:00", "is_full_day": True}],
    },
]


class TestHealth:

    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestExpandRoute:

    def test_weekly_weekdays(self):
        payload = {
            "template": {
                "id": "shift-1",
                "name": "Day shift",
                "start": "2025-01-20T09:00:00",
                "end": "2025-01-20T17:00:00",
                "recurrence": {"kind": "weekly", "weekdays": [1, 3, 5], "end_date": "2025-02-02"},
            }
        }
        response = client.post(f"{BASE}/occurrences/expand", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 6
        assert data[0]["id"] == "shift-1-20250120T0900-0"
        assert data[-1]["start"] == "2025-01-31T09:00:00"

    def test_stored_overrides(self):
        template = {
            "id": "shift-1",
            "name": "Day shift",
            "start": "2025-01-20T09:00:00",
            "end": "2025-01-20T17:00:00",
            "recurrence": {"kind": "daily", "end_date": "2025-01-21"},
        }
        stored = occurrence("shift-1-20250121T0900-1", day=21, assigned=["s1"])
        stored["is_modified"] = True

        response = client.post(f"{BASE}/occurrences/expand", json={"template": template, "stored": [stored]})
        data = response.json()
        assert [o["assigned_staff_ids"] for o in data] == [[], ["s1"]]

    def test_bad_interval(self):
        payload = {
            "template": {
                "id": "shift-1",
                "name": "Day shift",
                "start": "2025-01-20T09:00:00",
                "end": "2025-01-20T17:00:00",
                "recurrence": {"kind": "daily", "interval": 0},
            }
        }
        response = client.post(f"{BASE}/occurrences/expand", json=payload)
        assert response.status_code == 422
        assert "interval" in response.json()["detail"]


class TestAssignmentCheckRoute:

    def test_blocked_staff(self):
        payload = {
            "staff_id": "s2",
            "occurrence_id": "o1",
            "roster": ROSTER,
            "occurrences": [occurrence("o1")],
        }
        response = client.post(f"{BASE}/assignments/check", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert data["has_hard_violations"] is True
        assert data["violations"][0]["kind"] == "blocked_time"
        assert data["violations"][0]["severity"] == "hard"
        assert data["messages"][0].startswith("Bob has blocked time")

    def test_unknown_staff(self):
        payload = {
            "staff_id": "nobody",
            "occurrence_id": "o1",
            "roster": ROSTER,
            "occurrences": [occurrence("o1")],
        }
        response = client.post(f"{BASE}/assignments/check", json=payload)
        assert response.status_code == 404


class TestAutoScheduleRoute:

    def test_fills_week(self):
        payload = {
            "occurrences": [
                occurrence("o1", required_traits=[{"trait_id": "t-first-aid", "min_count": 1}]),
                occurrence("o2", day=21),
            ],
            "roster": ROSTER,
            "traits": TRAITS,
            "week_start": "2025-01-20",
        }
        response = client.post(f"{BASE}/auto-schedule", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["assignments"]["o1"] == ["s1"]
        assert data["assignments"]["o2"] == ["s2"]

    def test_week_start_not_monday(self):
        payload = {
            "occurrences": [occurrence("o1", day=21)],
            "roster": ROSTER,
            "traits": TRAITS,
            "week_start": "2025-01-21",
        }
        response = client.post(f"{BASE}/auto-schedule", json=payload)
        assert response.status_code == 422
        assert "Monday" in response.json()["detail"]

    def test_empty_week_without_week_start(self):
        payload = {"occurrences": [], "roster": ROSTER, "traits": TRAITS}
        response = client.post(f"{BASE}/auto-schedule", json=payload)
        assert response.status_code == 422
        assert "week_start" in response.json()["detail"]


class TestStaffingStatusRoute:

    def test_properly_staffed(self):
        occ = occurrence("o1", assigned=["s1"])
        payload = {"occurrence_id": "o1", "roster": ROSTER, "traits": TRAITS, "occurrences": [occ]}
        response = client.post(f"{BASE}/occurrences/status", json=payload)
        assert response.status_code == 200
        assert response.json()["state"] == "properly_staffed"

    def test_constraint_violation(self):
        occ = occurrence("o1", assigned=["s2"])
        payload = {"occurrence_id": "o1", "roster": ROSTER, "traits": TRAITS, "occurrences": [occ]}
        data = client.post(f"{BASE}/occurrences/status", json=payload).json()
        assert data["state"] == "constraint_violation"
        assert data["violations"][0]["staff_name"] == "Bob"

    def test_unknown_occurrence(self):
        payload = {"occurrence_id": "missing", "roster": ROSTER, "traits": TRAITS, "occurrences": []}
        response = client.post(f"{BASE}/occurrences/status", json=payload)
        assert response.status_code == 404
