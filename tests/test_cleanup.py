"""
Testes da limpeza de retenção (40 dias a partir da entrada mais recente)
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from app.models.daily_water_aggregate import DailyWaterAggregate
from app.models.user_favorite import UserFavorite
from app.models.user_settings import UserSettings
from app.models.water_entry import WaterEntry
from app.models.weekly_summary import WeeklySummary
from app.services.cleanup_service import run_cleanup
from app.services.favorites_service import add_favorite, list_favorites
from app.services.user_settings_service import UserSettingsNotFound
from app.utils.timezone_utils import get_week_start

# 15:00 em New York
NOW = datetime(2026, 3, 10, 19, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)


def _entry(db, user_id, day, ounces, classification="reusable-bottle", liquid="water", image_url=None):
    entry = WaterEntry(
        user_id=user_id,
        ounces=ounces,
        entry_date=day,
        timestamp=datetime(day.year, day.month, day.day, 16, 0, tzinfo=timezone.utc),
        classification=classification,
        liquid_type=liquid,
        image_url=image_url,
    )
    db.add(entry)
    db.commit()
    return entry


def _live_dates(db, user_id):
    rows = db.query(WaterEntry.entry_date).filter(
        WaterEntry.user_id == user_id,
        WaterEntry.is_deleted.is_(False),
    ).all()
    return sorted(row[0] for row in rows)


def test_old_entries_aggregated_then_deleted(db_session, user_id):
    old_day = TODAY - timedelta(days=45)
    _entry(db_session, user_id, TODAY, 16)
    _entry(db_session, user_id, TODAY - timedelta(days=10), 12)
    _entry(db_session, user_id, old_day, 8, image_url="https://storage.example.com/a.jpg")
    _entry(db_session, user_id, old_day, 12, classification="disposable-can", liquid="soda")
    db_session.add(WeeklySummary(
        user_id=user_id,
        week_start_date=get_week_start(old_day),
        total_ounces=20,
        days_with_data=0,
        liquid_types={"water": 8, "soda": 12},
    ))
    user_settings = db_session.query(UserSettings).filter(UserSettings.user_id == user_id).one()
    user_settings.last_cleanup_date = TODAY - timedelta(days=1)
    db_session.commit()

    result = run_cleanup(db_session, user_id, now=NOW)

    assert result["message"] == "Cleanup completed successfully"
    assert result["entriesProcessed"] == 2
    assert result["imagesDeleted"] == 1
    assert result["dailyAggregatesCreated"] == 1
    assert result["weeklySummariesUpdated"] == 1
    assert result["cutoffDate"] == (TODAY - timedelta(days=40)).isoformat()
    assert result["deletionDetails"] == {
        "byType": {"reusable-bottle": 1, "disposable-can": 1},
        "byLiquid": {"water": 1, "soda": 1},
    }
    assert result["lastCleanupDate"] == TODAY.isoformat()

    db_session.expire_all()
    assert _live_dates(db_session, user_id) == [TODAY - timedelta(days=10), TODAY]

    aggregate = db_session.query(DailyWaterAggregate).filter(
        DailyWaterAggregate.user_id == user_id,
        DailyWaterAggregate.entry_date == old_day,
    ).one()
    assert float(aggregate.total_ounces) == 20

    summary = db_session.query(WeeklySummary).filter(WeeklySummary.user_id == user_id).one()
    assert summary.days_with_data == 1

    user_settings = db_session.query(UserSettings).filter(UserSettings.user_id == user_id).one()
    assert user_settings.last_cleanup_date == TODAY


def test_runs_once_per_local_day(db_session, user_id):
    _entry(db_session, user_id, TODAY, 16)
    run_cleanup(db_session, user_id, now=NOW)

    result = run_cleanup(db_session, user_id, now=NOW)
    assert result["skipped"] is True
    assert "America/New_York" in result["message"]

    # meia-noite local seguinte: roda de novo
    next_day = datetime(2026, 3, 11, 4, 30, tzinfo=timezone.utc)
    assert "skipped" not in run_cleanup(db_session, user_id, now=next_day)


def test_forced_rerun_is_idempotent(db_session, user_id):
    old_day = TODAY - timedelta(days=41)
    _entry(db_session, user_id, TODAY, 16)
    _entry(db_session, user_id, old_day, 10)

    run_cleanup(db_session, user_id, now=NOW)
    again = run_cleanup(db_session, user_id, force=True, now=NOW)

    assert again["forced"] is True
    assert again["entriesProcessed"] == 0
    assert again["dailyAggregatesCreated"] == 0

    db_session.expire_all()
    totals = db_session.query(DailyWaterAggregate).filter(DailyWaterAggregate.user_id == user_id).all()
    assert [(a.entry_date, float(a.total_ounces)) for a in totals] == [(old_day, 10.0)]


def test_cutoff_is_relative_to_most_recent_entry(db_session, user_id):
    recent = TODAY - timedelta(days=100)
    _entry(db_session, user_id, recent, 16)
    _entry(db_session, user_id, recent - timedelta(days=39), 8)
    _entry(db_session, user_id, recent - timedelta(days=50), 8)

    result = run_cleanup(db_session, user_id, now=NOW)

    assert result["mostRecentEntryDate"] == recent.isoformat()
    assert result["entriesProcessed"] == 1
    db_session.expire_all()
    cutoff = date.fromisoformat(result["cutoffDate"])
    assert all(day >= cutoff for day in _live_dates(db_session, user_id))
    assert _live_dates(db_session, user_id) == [recent - timedelta(days=39), recent]


def test_user_without_entries(db_session, user_id):
    result = run_cleanup(db_session, user_id, now=NOW)
    assert result["message"] == "No entries to cleanup"
    assert result["entriesProcessed"] == 0


def test_missing_settings(db_session):
    from uuid import uuid4
    with pytest.raises(UserSettingsNotFound):
        run_cleanup(db_session, uuid4(), now=NOW)


def test_favorites_survive_cleanup(db_session, user_id):
    _entry(db_session, user_id, TODAY, 16)
    old = _entry(db_session, user_id, TODAY - timedelta(days=50), 24, classification="tumbler")
    favorite = add_favorite(db_session, user_id, old.id)

    run_cleanup(db_session, user_id, now=NOW)

    db_session.expire_all()
    assert _live_dates(db_session, user_id) == [TODAY]
    favorites = list_favorites(db_session, user_id)
    assert [f.id for f in favorites] == [favorite.id]
    assert favorites[0].classification == "tumbler"
    assert db_session.query(UserFavorite).count() == 1
