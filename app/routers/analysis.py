"""
Router para análise de bebidas (foto, código de barras, descrição)

Nenhuma entrada é gravada aqui: a análise devolve a estimativa e o cliente
confirma com POST /water-today. O limite diário é verificado antes de
qualquer trabalho caro e só é incrementado depois do sucesso.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from uuid import UUID
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.schemas.analysis import AnalyzeImageRequest, AnalyzeTextRequest
from app.services import barcode_service, water_analysis
from app.services.analysis_errors import AnalysisError, InvalidAnalysisInput
from app.services.daily_limits import (
    IMAGE_UPLOADS,
    TEXT_DESCRIPTIONS,
    check_daily_limit,
    increment_daily_limit,
    limit_exceeded_payload,
)
from app.services.job_queue import enqueue_job, get_job, serialize_job
from app.services.storage_service import clean_base64, normalize_mime_type
from app.services.user_settings_service import UserSettingsNotFound, get_user_settings

logger = logging.getLogger(__name__)
router = APIRouter()


def analysis_error_response(e: AnalysisError) -> JSONResponse:
    """Erros de análise com errorType para o cliente decidir o fallback."""
    status_code = status.HTTP_400_BAD_REQUEST if isinstance(e, InvalidAnalysisInput) else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(
        status_code=status_code,
        content={"error": str(e), "errorType": e.error_type},
    )


def _settings_or_404(db: Session, user_id: UUID):
    try:
        return get_user_settings(db, user_id)
    except UserSettingsNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User settings not found"
        )


def _limit_or_none(db: Session, user_id: UUID, limit_type: str):
    """Retorna a resposta 429 se o limite foi atingido."""
    limit_status = check_daily_limit(db, user_id, limit_type)
    if not limit_status["allowed"]:
        logger.warning(
            f"Daily limit reached: user_id={user_id}, type={limit_type}, "
            f"{limit_status['current']}/{limit_status['limit']}"
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=limit_exceeded_payload(limit_type, limit_status),
        )
    return None


@router.post("/analyze-water")
async def analyze_water(
    body: AnalyzeImageRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """
    Estima o volume consumido a partir da foto do recipiente.

    Fluxo:
    1. Valida a imagem
    2. Verifica o limite diário de imagens
    3. Upload + análise em dois passes
    4. Incrementa o contador
    """
    user_settings = _settings_or_404(db, user_id)

    try:
        image_b64 = clean_base64(body.base64)
        mime_type = normalize_mime_type(body.mime_type)

        rejected = _limit_or_none(db, user_id, IMAGE_UPLOADS)
        if rejected:
            return rejected

        result = await water_analysis.analyze_image(
            image_b64=image_b64,
            mime_type=mime_type,
            hand_size=user_settings.hand_size,
            sip_size=user_settings.sip_size,
            percentage=body.percentage,
            duration=body.duration,
            servings=body.servings,
            liquid_type=body.liquid_type,
            guard_user=user_id,
        )

        increment_daily_limit(db, user_id, IMAGE_UPLOADS)
        logger.info(f"Image analysis: user_id={user_id}, {result['ounces']}oz {result['liquidType']}")
        return {"success": True, "entry": result}

    except AnalysisError as e:
        logger.warning(f"Image analysis failed ({e.error_type}): user_id={user_id}: {e}")
        return analysis_error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error analyzing image: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze image"
        )


@router.post("/analyze-barcode")
async def analyze_barcode(
    body: AnalyzeImageRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """Foto do código de barras -> cache compartilhado -> LLM em caso de miss."""
    user_settings = _settings_or_404(db, user_id)

    try:
        image_b64 = clean_base64(body.base64)
        mime_type = normalize_mime_type(body.mime_type)

        rejected = _limit_or_none(db, user_id, IMAGE_UPLOADS)
        if rejected:
            return rejected

        result = await barcode_service.analyze_barcode(
            db,
            image_b64=image_b64,
            mime_type=mime_type,
            sip_size=user_settings.sip_size,
            percentage=body.percentage,
            duration=body.duration,
            servings=body.servings,
            liquid_type=body.liquid_type,
            guard_user=user_id,
        )

        increment_daily_limit(db, user_id, IMAGE_UPLOADS)
        logger.info(
            f"Barcode analysis: user_id={user_id}, barcode={result['barcode']}, "
            f"cached={result['cached']}, {result['ounces']}oz"
        )
        return {"success": True, "entry": result}

    except AnalysisError as e:
        logger.warning(f"Barcode analysis failed ({e.error_type}): user_id={user_id}: {e}")
        return analysis_error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error analyzing barcode: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze barcode"
        )


@router.post("/analyze-text")
async def analyze_text(
    body: AnalyzeTextRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """Descrição livre -> onças. Sem fallback numérico: erro pede nova descrição."""
    description = (body.description or "").strip()
    if not description:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing description"
        )

    _settings_or_404(db, user_id)

    try:
        rejected = _limit_or_none(db, user_id, TEXT_DESCRIPTIONS)
        if rejected:
            return rejected

        result = await water_analysis.analyze_text(description, guard_user=user_id)

        increment_daily_limit(db, user_id, TEXT_DESCRIPTIONS)
        return {"success": True, "entry": result}

    except AnalysisError as e:
        logger.warning(f"Text analysis failed ({e.error_type}): user_id={user_id}: {e}")
        return analysis_error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error analyzing description: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze description"
        )


@router.post("/analyze-water-async", status_code=status.HTTP_202_ACCEPTED)
async def analyze_water_async(
    body: AnalyzeImageRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """
    Enfileira a análise da foto na tabela jobs. O worker grava a entrada
    quando termina; o cliente acompanha por GET /job-status/{job_id}.
    A cota de imagens é consumida no enfileiramento.
    """
    _settings_or_404(db, user_id)

    try:
        image_b64 = clean_base64(body.base64)

        rejected = _limit_or_none(db, user_id, IMAGE_UPLOADS)
        if rejected:
            return rejected

        job = enqueue_job(
            db,
            "analyze_water",
            {
                "base64": image_b64,
                "mimeType": normalize_mime_type(body.mime_type),
                "percentage": body.percentage,
                "duration": body.duration,
                "servings": body.servings,
                "liquidType": body.liquid_type,
            },
            user_id=user_id,
        )
        increment_daily_limit(db, user_id, IMAGE_UPLOADS)

        return {"success": True, "jobId": str(job.id), "status": job.status}

    except AnalysisError as e:
        return analysis_error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error queueing analysis job: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to queue analysis"
        )


@router.get("/job-status/{job_id}")
async def job_status(
    job_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    job = get_job(db, job_id, user_id=user_id)
    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found"
        )
    return serialize_job(job)
