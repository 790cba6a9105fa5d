"""
Router da limpeza de retenção (40 dias), disparada pelo próprio cliente
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from uuid import UUID
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.schemas.cleanup import CleanupRequest
from app.services.cleanup_service import run_cleanup
from app.services.user_settings_service import UserSettingsNotFound

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/cleanup-old-entries")
async def cleanup_old_entries(
    body: Optional[CleanupRequest] = None,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """
    Agrega e apaga entradas anteriores a (entrada mais recente - 40 dias).
    Uma vez por dia local; {"force": true} ignora a trava.
    """
    force = body.force if body else False
    try:
        return run_cleanup(db, user_id, force=force)
    except UserSettingsNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User settings not found"
        )
    except SQLAlchemyError:
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Cleanup failed for user_id={user_id}: {e}", exc_info=True)
        db.rollback()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Cleanup failed",
                "details": str(e),
                "errorName": e.__class__.__name__,
            },
        )
