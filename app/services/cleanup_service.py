"""
Serviço de retenção: limpeza de entradas com mais de 40 dias.

Roda no máximo uma vez por dia local do usuário (force ignora a trava).
O corte é relativo à entrada mais recente do usuário, não à data atual:
quem parou de registrar há 100 dias mantém os últimos 40 dias registrados.

Ordem obrigatória: agregados diários gravados e commitados ANTES da
exclusão física, que é irreversível. As imagens no storage não são
tocadas; só as linhas desaparecem.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional, Set
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.config import settings
from app.models.daily_water_aggregate import DailyWaterAggregate
from app.models.water_entry import WaterEntry
from app.models.weekly_summary import WeeklySummary
from app.services.user_settings_service import get_user_settings
from app.services.water_entry_service import recount_days_with_data
from app.utils.sql_utils import reclaim_storage, upsert_insert
from app.utils.timezone_utils import get_local_date, get_week_start, utc_now

logger = logging.getLogger(__name__)


def _next_cleanup_label(tz_name: str) -> str:
    return f"Tomorrow at 12:00 AM {tz_name}"


def _upsert_daily_totals(db: Session, user_id: UUID, totals: Dict[date, Decimal]) -> int:
    """Grava o total de cada dia; reexecutar com o mesmo total não muda nada."""
    for entry_date, total in totals.items():
        stmt = upsert_insert(db, DailyWaterAggregate).values(
            user_id=user_id,
            entry_date=entry_date,
            total_ounces=total,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "entry_date"],
            set_={"total_ounces": stmt.excluded.total_ounces, "updated_at": utc_now()},
        )
        db.execute(stmt)
    return len(totals)


def _refresh_weekly_summaries(db: Session, user_id: UUID, weeks: Set[date]) -> int:
    updated = 0
    for week_start in sorted(weeks):
        summary = db.query(WeeklySummary).filter(
            WeeklySummary.user_id == user_id,
            WeeklySummary.week_start_date == week_start,
        ).first()
        if summary is None:
            continue
        summary.days_with_data = recount_days_with_data(db, user_id, week_start)
        summary.updated_at = utc_now()
        updated += 1
    return updated


def run_cleanup(
    db: Session,
    user_id: UUID,
    force: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Executa a limpeza de retenção do usuário.

    Args:
        db: Sessão do banco
        user_id: ID do usuário
        force: ignora a trava de uma execução por dia
        now: instante de referência (testes)

    Returns:
        Resumo da execução, ou {"skipped": True, ...} se já rodou hoje

    Raises:
        UserSettingsNotFound: usuário sem configurações
    """
    user_settings = get_user_settings(db, user_id)
    tz_name = user_settings.timezone or settings.DEFAULT_TIMEZONE
    today = get_local_date(tz_name, now)
    next_cleanup = _next_cleanup_label(tz_name)

    if not force and user_settings.last_cleanup_date == today:
        logger.info(f"Cleanup skipped for user_id={user_id}: already ran on {today}")
        return {
            "skipped": True,
            "message": f"Background cleanup already ran today. Resets at 12:00 AM user time ({tz_name}).",
            "lastCleanupDate": today.isoformat(),
            "nextCleanup": next_cleanup,
        }

    logger.info(f"Starting {settings.RETENTION_DAYS}-day cleanup: user_id={user_id}, force={force}")

    most_recent = db.query(func.max(WaterEntry.entry_date)).filter(
        WaterEntry.user_id == user_id,
        WaterEntry.is_deleted.is_(False),
    ).scalar()

    empty_details = {"byType": {}, "byLiquid": {}}

    if most_recent is None:
        user_settings.last_cleanup_date = today
        db.commit()
        return {
            "message": "No entries to cleanup",
            "entriesProcessed": 0,
            "imagesDeleted": 0,
            "dailyAggregatesCreated": 0,
            "weeklySummariesUpdated": 0,
            "lastCleanupDate": today.isoformat(),
            "nextCleanup": next_cleanup,
            "deletionDetails": empty_details,
            "forced": force,
        }

    cutoff = most_recent - timedelta(days=settings.RETENTION_DAYS)

    old_entries = db.query(WaterEntry).filter(
        WaterEntry.user_id == user_id,
        WaterEntry.is_deleted.is_(False),
        WaterEntry.entry_date < cutoff,
    ).all()

    by_type: Dict[str, int] = defaultdict(int)
    by_liquid: Dict[str, int] = defaultdict(int)
    totals: Dict[date, Decimal] = defaultdict(Decimal)
    weeks: Set[date] = set()
    images = 0

    for entry in old_entries:
        by_type[entry.classification or "unknown"] += 1
        by_liquid[entry.liquid_type or "water"] += 1
        totals[entry.entry_date] += Decimal(str(entry.ounces))
        weeks.add(get_week_start(entry.entry_date))
        if entry.image_url:
            images += 1

    # 1) agregados primeiro, commitados
    aggregates = _upsert_daily_totals(db, user_id, totals)
    db.commit()
    logger.info(f"Daily aggregates upserted: {aggregates} dates for user_id={user_id}")

    # 2) exclusão física
    deleted = 0
    if old_entries:
        deleted = db.query(WaterEntry).filter(
            WaterEntry.user_id == user_id,
            WaterEntry.is_deleted.is_(False),
            WaterEntry.entry_date < cutoff,
        ).delete(synchronize_session=False)
        db.commit()
        logger.info(f"Hard deleted {deleted} entries (images in storage left untouched)")

        # 3) compactação imediata
        reclaim_storage(db, WaterEntry.__tablename__)

    # 4) contagem de dias por semana a partir dos agregados
    weeks_updated = _refresh_weekly_summaries(db, user_id, weeks)

    # 5) carimbo do dia
    user_settings.last_cleanup_date = today
    db.commit()

    logger.info(
        f"Cleanup completed: user_id={user_id}, deleted={deleted}, "
        f"aggregates={aggregates}, weeks={weeks_updated}, cutoff={cutoff}"
    )
    return {
        "message": "Cleanup completed successfully",
        "mostRecentEntryDate": most_recent.isoformat(),
        "cutoffDate": cutoff.isoformat(),
        "entriesProcessed": deleted,
        "imagesDeleted": images,
        "dailyAggregatesCreated": aggregates,
        "weeklySummariesUpdated": weeks_updated,
        "lastCleanupDate": today.isoformat(),
        "nextCleanup": next_cleanup,
        "deletionDetails": {"byType": dict(by_type), "byLiquid": dict(by_liquid)},
        "forced": force,
    }
