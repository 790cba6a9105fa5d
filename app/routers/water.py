"""
Router para entradas de água (hoje, histórico, exclusão)
"""
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from uuid import UUID
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.schemas.water import WaterEntryCreate
from app.services.daily_limits import MANUAL_ADDS, check_daily_limit, limit_exceeded_payload
from app.services.hydration import InvalidEntryError, validate_manual_ounces
from app.services.user_settings_service import UserSettingsNotFound
from app.services.water_entry_service import (
    DuplicateEntryError,
    EntryNotFound,
    create_water_entry_with_aggregates,
    get_history,
    get_today,
    serialize_entry,
    soft_delete_entry,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/water-today")
async def water_today(
    day: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """Entradas e total do dia (padrão: hoje no fuso do usuário)."""
    try:
        return get_today(db, user_id, day=day)
    except UserSettingsNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User settings not found"
        )
    except OperationalError as e:
        logger.error(f"Database unavailable reading today's entries: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "Database temporarily unavailable", "details": str(e.orig)},
        )


@router.post("/water-today")
async def add_water_entry(
    body: WaterEntryCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """
    Confirma uma entrada (resultado de análise, favorito ou manual) e
    atualiza os agregados. Entradas manuais e de favoritos contam no
    limite diário de entradas manuais.
    """
    try:
        ounces = validate_manual_ounces(body.ounces)
    except InvalidEntryError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    classification = body.classification or ("manual" if body.is_manual else "reusable-bottle")
    counts_as_manual = body.is_manual or body.created_from_favorite or classification == "manual"
    limit_type = MANUAL_ADDS if counts_as_manual else None

    try:
        if limit_type:
            limit_status = check_daily_limit(db, user_id, limit_type)
            if not limit_status["allowed"]:
                logger.warning(f"Manual add limit reached: user_id={user_id}")
                return JSONResponse(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    content=limit_exceeded_payload(limit_type, limit_status),
                )

        entry = create_water_entry_with_aggregates(
            db,
            user_id=user_id,
            ounces=ounces,
            classification=classification,
            liquid_type=body.liquid_type or "water",
            servings=body.servings or 1,
            image_url=body.image_url,
            description=body.description,
            created_from_favorite=body.created_from_favorite,
            limit_type=limit_type,
        )
        return {"success": True, "entry": serialize_entry(entry)}

    except UserSettingsNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User settings not found"
        )
    except DuplicateEntryError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Entry already exists"
        )
    except HTTPException:
        raise
    except OperationalError:
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error saving water entry: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save water entry"
        )


@router.get("/water-history")
async def water_history(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    try:
        return get_history(db, user_id)
    except UserSettingsNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User settings not found"
        )


@router.delete("/water-entry/{entry_id}")
async def delete_water_entry(
    entry_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    try:
        entry = soft_delete_entry(db, user_id, entry_id)
    except EntryNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entry not found"
        )
    return {"success": True, "deletedId": str(entry.id), "ounces": float(entry.ounces)}
