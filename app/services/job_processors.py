"""
Handlers dos tipos de job da fila.

Entrega é at-least-once: um job pode rodar de novo depois de uma falha
transitória ou de um worker que morreu no meio. Cada handler só grava a
entrada no final e sem commit; o commit é o mesmo que marca o job como
complete, então uma entrada nunca existe sem o job concluído.
"""
import logging
from typing import Any, Awaitable, Callable, Dict
from sqlalchemy.orm import Session
from app.models.job import Job
from app.services import barcode_service, water_analysis
from app.services.analysis_errors import InvalidAnalysisInput
from app.services.storage_service import clean_base64, normalize_mime_type
from app.services.user_settings_service import get_user_settings
from app.services.water_entry_service import create_water_entry_with_aggregates, serialize_entry

logger = logging.getLogger(__name__)


class UnknownJobType(Exception):
    pass


def _image_payload(payload: Dict[str, Any]):
    raw = payload.get("base64")
    if not raw:
        raise InvalidAnalysisInput("No image data in job payload")
    return clean_base64(raw), normalize_mime_type(payload.get("mimeType"))


def _persist(db: Session, job: Job, analysis: Dict[str, Any]) -> Dict[str, Any]:
    entry = create_water_entry_with_aggregates(
        db,
        user_id=job.user_id,
        ounces=analysis["ounces"],
        classification=analysis["classification"],
        liquid_type=analysis["liquidType"],
        servings=analysis.get("servings") or 1,
        image_url=analysis.get("imageUrl"),
        description=analysis.get("description"),
        commit=False,
    )
    logger.info(f"[Job {job.id}] Water entry staged: {entry.id}")
    result = dict(analysis)
    result["entryId"] = str(entry.id)
    result["timestamp"] = serialize_entry(entry)["timestamp"]
    return result


async def process_analyze_water(db: Session, job: Job) -> Dict[str, Any]:
    payload = job.payload or {}
    image_b64, mime_type = _image_payload(payload)
    user_settings = get_user_settings(db, job.user_id)

    analysis = await water_analysis.analyze_image(
        image_b64=image_b64,
        mime_type=mime_type,
        hand_size=user_settings.hand_size,
        sip_size=user_settings.sip_size,
        percentage=payload.get("percentage"),
        duration=payload.get("duration"),
        servings=payload.get("servings") or 1,
        liquid_type=payload.get("liquidType"),
    )
    return _persist(db, job, analysis)


async def process_analyze_barcode(db: Session, job: Job) -> Dict[str, Any]:
    payload = job.payload or {}
    image_b64, mime_type = _image_payload(payload)
    user_settings = get_user_settings(db, job.user_id)

    analysis = await barcode_service.analyze_barcode(
        db,
        image_b64=image_b64,
        mime_type=mime_type,
        sip_size=user_settings.sip_size,
        percentage=payload.get("percentage"),
        duration=payload.get("duration"),
        servings=payload.get("servings") or 1,
        liquid_type=payload.get("liquidType"),
    )
    return _persist(db, job, analysis)


async def process_analyze_text(db: Session, job: Job) -> Dict[str, Any]:
    description = ((job.payload or {}).get("description") or "").strip()
    if not description:
        raise InvalidAnalysisInput("Invalid job payload: missing description")
    analysis = await water_analysis.analyze_text(description)
    return _persist(db, job, analysis)


PROCESSORS: Dict[str, Callable[[Session, Job], Awaitable[Dict[str, Any]]]] = {
    "analyze_water": process_analyze_water,
    "analyze_barcode": process_analyze_barcode,
    "analyze_text": process_analyze_text,
}


def get_processor(job_type: str):
    processor = PROCESSORS.get((job_type or "").replace("-", "_"))
    if processor is None:
        raise UnknownJobType(f"Unknown job type: {job_type}")
    return processor
