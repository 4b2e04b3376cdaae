"""
Tests for the weekly batch run and its cron endpoint.

Batch tests empty both tables first: the run looks at every stored user.
"""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from weekly_coach.core.config import settings
from weekly_coach.schemas.checkin import CheckinDocument
from weekly_coach.services.behaviors import ALL_BEHAVIORS
from weekly_coach.services.record_source import CheckinStore, SummaryStore
from weekly_coach.services.weekly_batch import previous_week, run_weekly_batch

TODAY = date(2026, 2, 9)  # Monday; previous week is 2026-W06 (Feb 2 - Feb 8)


def _seed(db, email: str, days: int, today: date = TODAY) -> None:
    """`days` Solid check-ins ending yesterday; exercise on 5 of every 7."""
    store = CheckinStore(db)
    for offset in range(1, days + 1):
        day = today - timedelta(days=offset)
        store.upsert(email, CheckinDocument.model_validate({
            "date": day.isoformat(),
            "exerciseCompleted": (offset - 1) % 7 < 5,
            "behaviorGrades": [{"name": n, "grade": 80} for n in ALL_BEHAVIORS],
            "momentumScore": 72,
            "totalRealCheckIns": 50 - offset,
        }))


class TestPreviousWeek:
    def test_from_monday(self):
        assert previous_week(TODAY) == ("2026-W06", date(2026, 2, 2), date(2026, 2, 8))

    def test_from_sunday(self):
        assert previous_week(date(2026, 2, 15)) == ("2026-W06", date(2026, 2, 2), date(2026, 2, 8))

    def test_across_year_boundary(self):
        assert previous_week(date(2026, 1, 5)) == ("2026-W01", date(2025, 12, 29), date(2026, 1, 4))


@pytest.mark.usefixtures("clean_tables")
class TestRunWeeklyBatch:
    def test_generates_for_eligible_users_only(self, db, generator):
        _seed(db, "batch-ready@example.com", 14)
        _seed(db, "batch-light@example.com", 3)

        result = run_weekly_batch(db, generator, today=TODAY)

        assert result.week_id == "2026-W06"
        by_email = {r.email: r for r in result.results}
        assert by_email["batch-ready@example.com"].status == "generated"
        assert by_email["batch-ready@example.com"].check_ins == 7
        assert by_email["batch-light@example.com"].status == "insufficient"
        assert by_email["batch-light@example.com"].error == "Insufficient check-ins (need 6+)"

        stored = SummaryStore(db).get("batch-ready@example.com", "2026-W06")
        assert stored["status"] == "generated"
        assert SummaryStore(db).get("batch-light@example.com", "2026-W06") is None

    def test_summary_counts(self, db, make_generator):
        _seed(db, "batch-a@example.com", 14)
        _seed(db, "batch-b@example.com", 2)
        result = run_weekly_batch(db, make_generator("not json"), today=TODAY)
        summary = result.summary()
        assert summary["totalUsers"] == 2
        assert summary["rejected"] == 1
        assert summary["insufficientCheckIns"] == 1
        assert summary["generated"] == 0
        assert summary["durationMs"] >= 0

    def test_one_failure_does_not_stop_the_run(self, db, make_generator, valid_coaching):
        _seed(db, "batch-first@example.com", 14)
        _seed(db, "batch-second@example.com", 14)
        generator = make_generator(RuntimeError("boom"), json.dumps(valid_coaching))

        result = run_weekly_batch(db, generator, today=TODAY)

        statuses = {r.email: r.status for r in result.results}
        assert statuses == {"batch-first@example.com": "failed", "batch-second@example.com": "generated"}
        failed = next(r for r in result.results if r.status == "failed")
        assert failed.to_dict() == {
            "email": "batch-first@example.com",
            "checkIns": 7,
            "status": "failed",
            "generated": False,
            "error": "boom",
        }

    def test_min_checkins_override(self, db, generator):
        _seed(db, "batch-three@example.com", 3)
        result = run_weekly_batch(db, generator, today=TODAY, min_checkins=3)
        assert result.results[0].status != "insufficient"


@pytest.mark.usefixtures("clean_tables")
class TestCronEndpoint:
    def test_requires_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        r = client.post("/cron/generate-weekly-coaching")
        assert r.status_code == 401
        assert r.json()["code"] == "UNAUTHORIZED"

    def test_wrong_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        r = client.post("/cron/generate-weekly-coaching", headers={"Authorization": "Bearer nope"})
        assert r.status_code == 401

    def test_no_configured_secret_refuses_everyone(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", None)
        r = client.post("/cron/generate-weekly-coaching", headers={"Authorization": "Bearer "})
        assert r.status_code == 401

    def test_runs_batch(self, client, db, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        today = datetime.now(tz=timezone.utc).date()
        week_id, monday, _ = previous_week(today)
        CheckinStore(db).upsert("cron-light@example.com", CheckinDocument.model_validate({
            "date": monday.isoformat(),
        }))

        r = client.post("/cron/generate-weekly-coaching", headers={"Authorization": "Bearer s3cret"})

        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["weekId"] == week_id
        assert body["summary"]["totalUsers"] == 1
        assert body["summary"]["insufficientCheckIns"] == 1
        assert body["results"][0]["email"] == "cron-light@example.com"
        assert body["results"][0]["generated"] is False
