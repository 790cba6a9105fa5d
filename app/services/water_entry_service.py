"""
Serviço de entradas de água: gravação com agregados diário/semanal,
exclusão lógica e leituras (hoje, histórico, resumo semanal, estatísticas).
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.config import settings
from app.models.daily_water_aggregate import DailyWaterAggregate
from app.models.water_entry import WaterEntry
from app.models.weekly_summary import WeeklySummary
from app.services.daily_limits import increment_daily_limit
from app.services.user_settings_service import get_user_settings
from app.utils.sql_utils import upsert_insert
from app.utils.timezone_utils import (
    as_utc,
    get_local_date,
    get_local_now,
    get_time_bucket,
    get_week_start,
    utc_now,
)

logger = logging.getLogger(__name__)

TIME_BUCKETS = ("early_morning_oz", "morning_oz", "afternoon_oz", "evening_oz", "night_oz")


class DuplicateEntryError(Exception):
    pass


class EntryNotFound(Exception):
    pass


def _dec(value) -> Decimal:
    return Decimal(str(value))


def serialize_entry(entry: WaterEntry) -> Dict[str, Any]:
    timestamp = as_utc(entry.timestamp)
    return {
        "id": str(entry.id),
        "ounces": float(entry.ounces),
        "entryDate": entry.entry_date.isoformat(),
        "timestamp": timestamp.isoformat() if timestamp else None,
        "classification": entry.classification,
        "liquidType": entry.liquid_type,
        "imageUrl": entry.image_url,
        "description": entry.description,
        "servings": entry.servings,
        "createdFromFavorite": entry.created_from_favorite,
    }


def recount_days_with_data(db: Session, user_id: UUID, week_start: date) -> int:
    """Dias da semana com total > 0 em daily_water_aggregates."""
    week_end = week_start + timedelta(days=6)
    return db.query(func.count(func.distinct(DailyWaterAggregate.entry_date))).filter(
        DailyWaterAggregate.user_id == user_id,
        DailyWaterAggregate.entry_date >= week_start,
        DailyWaterAggregate.entry_date <= week_end,
        DailyWaterAggregate.total_ounces > 0,
    ).scalar() or 0


def _add_to_daily_aggregate(db: Session, user_id: UUID, entry_date: date, ounces: Decimal) -> None:
    stmt = upsert_insert(db, DailyWaterAggregate).values(
        user_id=user_id,
        entry_date=entry_date,
        total_ounces=ounces,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "entry_date"],
        set_={"total_ounces": DailyWaterAggregate.total_ounces + stmt.excluded.total_ounces},
    )
    db.execute(stmt)


def _get_or_create_weekly_summary(db: Session, user_id: UUID, week_start: date) -> WeeklySummary:
    summary = db.query(WeeklySummary).filter(
        WeeklySummary.user_id == user_id,
        WeeklySummary.week_start_date == week_start,
    ).first()
    if summary is None:
        summary = WeeklySummary(
            user_id=user_id,
            week_start_date=week_start,
            total_ounces=0,
            days_with_data=0,
            early_morning_oz=0,
            morning_oz=0,
            afternoon_oz=0,
            evening_oz=0,
            night_oz=0,
            liquid_types={},
        )
        db.add(summary)
        db.flush()
    return summary


def _apply_to_weekly_summary(
    db: Session,
    user_id: UUID,
    entry_date: date,
    local_hour: int,
    liquid_type: str,
    ounces: Decimal,
) -> None:
    """Soma (ou subtrai, com ounces negativo) a entrada no resumo da semana."""
    week_start = get_week_start(entry_date)
    summary = _get_or_create_weekly_summary(db, user_id, week_start)
    bucket = get_time_bucket(local_hour)

    summary.total_ounces = max(_dec(0), _dec(summary.total_ounces or 0) + ounces)
    setattr(summary, bucket, max(_dec(0), _dec(getattr(summary, bucket) or 0) + ounces))

    liquid_types = dict(summary.liquid_types or {})
    liquid_total = round(float(liquid_types.get(liquid_type, 0)) + float(ounces), 2)
    if liquid_total > 0:
        liquid_types[liquid_type] = liquid_total
    else:
        liquid_types.pop(liquid_type, None)
    summary.liquid_types = liquid_types

    db.flush()
    summary.days_with_data = recount_days_with_data(db, user_id, week_start)
    summary.updated_at = utc_now()


def create_water_entry_with_aggregates(
    db: Session,
    user_id: UUID,
    ounces: float,
    classification: str = "reusable-bottle",
    liquid_type: str = "water",
    servings: int = 1,
    image_url: Optional[str] = None,
    description: Optional[str] = None,
    created_from_favorite: bool = False,
    limit_type: Optional[str] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> WaterEntry:
    """
    Grava a entrada e atualiza agregado diário e resumo semanal na mesma
    transação.

    Args:
        limit_type: contador diário a incrementar junto (manual_adds)
        now: instante da entrada (testes); entry_date é o dia local
        commit: False deixa o commit para o chamador (worker fecha o job
            na mesma transação)

    Raises:
        UserSettingsNotFound: usuário sem configurações
        DuplicateEntryError: violação de unicidade
    """
    user_settings = get_user_settings(db, user_id)
    timestamp = now or utc_now()
    local_now = get_local_now(user_settings.timezone, timestamp)
    entry_date = local_now.date()
    amount = _dec(ounces)
    liquid = liquid_type or "water"

    try:
        entry = WaterEntry(
            user_id=user_id,
            ounces=amount,
            entry_date=entry_date,
            timestamp=timestamp,
            classification=classification or "reusable-bottle",
            liquid_type=liquid,
            image_url=image_url,
            description=description,
            servings=servings or 1,
            created_from_favorite=bool(created_from_favorite),
            is_deleted=False,
        )
        db.add(entry)
        db.flush()

        _add_to_daily_aggregate(db, user_id, entry_date, amount)
        _apply_to_weekly_summary(db, user_id, entry_date, local_now.hour, liquid, amount)

        if limit_type:
            increment_daily_limit(db, user_id, limit_type, now=timestamp, commit=False)

        if commit:
            db.commit()
            db.refresh(entry)
        else:
            db.flush()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Duplicate water entry for user_id={user_id}: {e}")
        raise DuplicateEntryError("Entry already exists") from e

    logger.info(
        f"Water entry created: user_id={user_id}, {float(amount)}oz {liquid} "
        f"on {entry_date} ({user_settings.timezone})"
    )
    return entry


def soft_delete_entry(db: Session, user_id: UUID, entry_id: UUID) -> WaterEntry:
    """
    Marca a entrada como excluída e desconta dos agregados.

    Raises:
        EntryNotFound: entrada inexistente, de outro usuário ou já excluída
    """
    entry = db.query(WaterEntry).filter(
        WaterEntry.id == entry_id,
        WaterEntry.user_id == user_id,
        WaterEntry.is_deleted.is_(False),
    ).first()
    if not entry:
        raise EntryNotFound("Entry not found")

    user_settings = get_user_settings(db, user_id)
    amount = _dec(entry.ounces)
    entry.is_deleted = True

    aggregate = db.query(DailyWaterAggregate).filter(
        DailyWaterAggregate.user_id == user_id,
        DailyWaterAggregate.entry_date == entry.entry_date,
    ).first()
    if aggregate:
        aggregate.total_ounces = max(_dec(0), _dec(aggregate.total_ounces) - amount)

    local_hour = get_local_now(user_settings.timezone, as_utc(entry.timestamp)).hour
    _apply_to_weekly_summary(db, user_id, entry.entry_date, local_hour, entry.liquid_type, -amount)

    db.commit()
    logger.info(f"Water entry soft-deleted: id={entry_id}, user_id={user_id}")
    return entry


def get_entries_for_date(db: Session, user_id: UUID, day: date) -> List[WaterEntry]:
    return db.query(WaterEntry).filter(
        WaterEntry.user_id == user_id,
        WaterEntry.entry_date == day,
        WaterEntry.is_deleted.is_(False),
    ).order_by(WaterEntry.timestamp.asc()).all()


def get_today(db: Session, user_id: UUID, day: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Entradas e total do dia (padrão: hoje no fuso do usuário)."""
    user_settings = get_user_settings(db, user_id)
    target = day or get_local_date(user_settings.timezone, now)
    entries = get_entries_for_date(db, user_id, target)
    total = sum(float(e.ounces) for e in entries)
    return {
        "date": target.isoformat(),
        "total": round(total, 2),
        "entries": [serialize_entry(e) for e in entries],
    }


def get_history(db: Session, user_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Histórico diário: janela recente a partir das entradas (com contagem),
    dias anteriores a partir de daily_water_aggregates (entry_count 0).
    """
    user_settings = get_user_settings(db, user_id)
    today = get_local_date(user_settings.timezone, now)
    window_start = today - timedelta(days=settings.RETENTION_DAYS)
    daily_goal = float(user_settings.daily_goal or settings.DEFAULT_DAILY_GOAL)

    recent = db.query(
        WaterEntry.entry_date,
        func.sum(WaterEntry.ounces).label("total_ounces"),
        func.count(WaterEntry.id).label("entry_count"),
    ).filter(
        WaterEntry.user_id == user_id,
        WaterEntry.is_deleted.is_(False),
        WaterEntry.entry_date >= window_start,
    ).group_by(WaterEntry.entry_date).all()

    older = db.query(DailyWaterAggregate).filter(
        DailyWaterAggregate.user_id == user_id,
        DailyWaterAggregate.entry_date < window_start,
    ).all()

    rows = [
        {
            "date": row.entry_date.isoformat(),
            "total_ounces": round(float(row.total_ounces or 0), 2),
            "entry_count": int(row.entry_count),
            "daily_goal": daily_goal,
        }
        for row in recent
    ]
    rows.extend(
        {
            "date": agg.entry_date.isoformat(),
            "total_ounces": round(float(agg.total_ounces or 0), 2),
            "entry_count": 0,
            "daily_goal": daily_goal,
        }
        for agg in older
    )
    rows.sort(key=lambda r: r["date"], reverse=True)

    return {"history": rows[:settings.HISTORY_MAX_DAYS], "defaultGoal": daily_goal}


def serialize_weekly_summary(summary: Optional[WeeklySummary], week_start: date) -> Dict[str, Any]:
    if summary is None:
        return {
            "weekStart": week_start.isoformat(),
            "totalOunces": 0.0,
            "daysWithData": 0,
            "timeOfDay": {bucket: 0.0 for bucket in TIME_BUCKETS},
            "liquidTypes": {},
        }
    return {
        "weekStart": summary.week_start_date.isoformat(),
        "totalOunces": float(summary.total_ounces or 0),
        "daysWithData": summary.days_with_data,
        "timeOfDay": {bucket: float(getattr(summary, bucket) or 0) for bucket in TIME_BUCKETS},
        "liquidTypes": summary.liquid_types or {},
    }


def get_weekly_summary(db: Session, user_id: UUID, week_start: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    user_settings = get_user_settings(db, user_id)
    start = get_week_start(week_start or get_local_date(user_settings.timezone, now))
    summary = db.query(WeeklySummary).filter(
        WeeklySummary.user_id == user_id,
        WeeklySummary.week_start_date == start,
    ).first()
    return serialize_weekly_summary(summary, start)


def get_user_stats(db: Session, user_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Total de todos os tempos, dias que bateram a meta e dias desde o primeiro registro."""
    user_settings = get_user_settings(db, user_id)
    daily_goal = float(user_settings.daily_goal or settings.DEFAULT_DAILY_GOAL)
    today = get_local_date(user_settings.timezone, now)

    base = db.query(DailyWaterAggregate).filter(
        DailyWaterAggregate.user_id == user_id,
        DailyWaterAggregate.total_ounces > 0,
    )
    total_ounces = base.with_entities(func.sum(DailyWaterAggregate.total_ounces)).scalar() or 0
    days_hit_goal = base.filter(DailyWaterAggregate.total_ounces >= daily_goal).count()
    first_date = base.with_entities(func.min(DailyWaterAggregate.entry_date)).scalar()

    total_days = (today - first_date).days + 1 if first_date else 0

    return {
        "totalOunces": round(float(total_ounces)),
        "daysHitGoal": days_hit_goal,
        "totalDays": total_days,
        "dailyGoal": daily_goal,
    }
