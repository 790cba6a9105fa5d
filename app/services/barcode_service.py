"""
Serviço de análise por código de barras.

O cache por código é compartilhado entre todos os usuários e não expira:
uma vez gravado, o valor é tratado como verdade e o LLM não é chamado de novo.
"""
import logging
import re
from typing import Any, Dict, Optional, Tuple
import httpx
from sqlalchemy.orm import Session
from app.config import settings
from app.middleware import llm_guard
from app.models.barcode_cache import BarcodeCache
from app.services import storage_service
from app.services.analysis_errors import AnalysisError, AnalysisNetworkError, BarcodeNotFoundError
from app.services.hydration import (
    apply_hydration_multiplier,
    clamp_ounces,
    consumed_from_container,
    duration_to_ounces,
    round_to_tenth,
)
from app.services.llm_client import LLMClient, get_llm_client, image_content
from app.services.prompts import BARCODE_PROMPT
from app.utils.sql_utils import upsert_insert

logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_OZ = 16.0
DEFAULT_PRODUCT_NAME = "Unknown Product"
CACHE_SOURCE = "GPT Vision"

_OUNCES_RE = re.compile(r"OUNCES:\s*(\d+\.?\d*)", re.IGNORECASE)
_PRODUCT_RE = re.compile(r"PRODUCT:\s*(.+)", re.IGNORECASE)
_LIQUID_RE = re.compile(r"LIQUID:\s*(.+)", re.IGNORECASE)
_SIZE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:fl\.?\s*)?oz\b", re.IGNORECASE)
_PACK_RE = re.compile(r"(\d+)\s*[- ]?\s*(?:pack|pk|ct|count)\b", re.IGNORECASE)


def parse_barcode_response(content: str) -> Tuple[float, str, str]:
    """
    Extrai (onças por recipiente, produto, líquido) da resposta do LLM.

    Se o modelo devolver o total do fardo (24 x 16.9 = 405.6) e o texto
    trouxer a contagem e o tamanho unitário, usa o tamanho unitário.
    """
    ounces: Optional[float] = None
    match = _OUNCES_RE.search(content)
    if match:
        ounces = float(match.group(1))

    sizes = [float(s) for s in _SIZE_RE.findall(content)]
    pack = _PACK_RE.search(content)
    pack_count = int(pack.group(1)) if pack else 0

    if ounces is None and sizes:
        ounces = sizes[0]
    elif ounces is not None and pack_count > 1:
        for size in sizes:
            if abs(ounces - pack_count * size) < 0.5:
                logger.info(f"Multi-pack total {ounces}oz corrected to per-container {size}oz")
                ounces = size
                break

    if ounces is None or ounces <= 0:
        ounces = DEFAULT_CONTAINER_OZ

    product_match = _PRODUCT_RE.search(content)
    product_name = product_match.group(1).strip() if product_match else DEFAULT_PRODUCT_NAME

    liquid_match = _LIQUID_RE.search(content)
    liquid_type = liquid_match.group(1).strip().lower() if liquid_match else "water"

    return ounces, product_name or DEFAULT_PRODUCT_NAME, liquid_type or "water"


async def detect_barcode(image_b64: str) -> str:
    """
    Detecta o código de barras via Google Vision (images:annotate).

    Raises:
        AnalysisNetworkError: timeout / conexão
        AnalysisError: "Barcode detection failed"
        BarcodeNotFoundError: nenhuma anotação
    """
    body = {
        "requests": [
            {
                "image": {"content": image_b64},
                "features": [{"type": "BARCODE_DETECTION", "maxResults": 5}],
            }
        ]
    }
    try:
        async with httpx.AsyncClient(timeout=settings.VISION_TIMEOUT) as client:
            response = await client.post(
                settings.GOOGLE_VISION_URL,
                params={"key": settings.GOOGLE_VISION_API_KEY},
                json=body,
            )
    except httpx.TimeoutException as e:
        logger.error(f"Barcode detection timed out: {e}")
        raise AnalysisNetworkError("Barcode detection timed out") from e
    except httpx.RequestError as e:
        logger.error(f"Barcode detection connection error: {e}")
        raise AnalysisNetworkError("Could not reach barcode detection service") from e

    if response.status_code != 200:
        logger.error(f"Barcode detection failed: {response.status_code} {response.text[:200]}")
        raise AnalysisError("Barcode detection failed")

    data = response.json()
    responses = data.get("responses") or [{}]
    annotations = responses[0].get("barcodeAnnotations") or []
    if not annotations or not annotations[0].get("description"):
        raise BarcodeNotFoundError("No barcode found in image")

    barcode = str(annotations[0]["description"]).strip()
    logger.info(f"Barcode detected: {barcode}")
    return barcode


def lookup_barcode(db: Session, barcode: str) -> Optional[BarcodeCache]:
    return db.query(BarcodeCache).filter(BarcodeCache.barcode == barcode).first()


def store_barcode(
    db: Session,
    barcode: str,
    product_name: str,
    ounces: float,
    liquid_type: Optional[str] = None,
) -> None:
    """Grava no cache; se outro request gravou antes, mantém o existente."""
    stmt = upsert_insert(db, BarcodeCache).values(
        barcode=barcode,
        product_name=product_name,
        ounces=ounces,
        liquid_type=liquid_type,
        source=CACHE_SOURCE,
    ).on_conflict_do_nothing(index_elements=["barcode"])
    db.execute(stmt)
    db.commit()
    logger.info(f"Barcode cached: {barcode} -> {ounces}oz ({product_name})")


async def analyze_barcode(
    db: Session,
    image_b64: str,
    mime_type: str,
    sip_size: str = "medium",
    percentage: Optional[float] = None,
    duration: Optional[Any] = None,
    servings: Optional[int] = 1,
    liquid_type: Optional[str] = None,
    guard_user: Optional[Any] = None,
    llm: Optional[LLMClient] = None,
) -> Dict[str, Any]:
    """
    Upload -> detecção do código -> cache -> (LLM em caso de miss) -> cálculo.

    Returns:
        dict com ounces, classification, liquidType, servings, imageUrl,
        containerCapacity, productName, barcode, cached
    """
    image_url = await storage_service.upload_image(image_b64, mime_type)
    barcode = await detect_barcode(image_b64)

    cached = lookup_barcode(db, barcode)
    if cached:
        container_ounces = float(cached.ounces)
        product_name = cached.product_name or DEFAULT_PRODUCT_NAME
        detected_liquid = cached.liquid_type or "water"
        logger.info(f"Using cached result for barcode {barcode}: {container_ounces}oz, {product_name}")
    else:
        llm = llm or get_llm_client()
        data_url = storage_service.to_data_url(image_b64, mime_type)
        async with llm_guard.guarded(guard_user):
            content = await llm.complete(
                messages=[{"role": "user", "content": image_content(
                    f"{BARCODE_PROMPT}\n\nDetected barcode: {barcode}", data_url
                )}],
                model=settings.OPENAI_BARCODE_MODEL,
                max_tokens=100,
                operation="analyze-barcode",
            )
        container_ounces, product_name, detected_liquid = parse_barcode_response(content)
        store_barcode(db, barcode, product_name, container_ounces, detected_liquid)

    if duration:
        consumed = duration_to_ounces(duration, sip_size)
    else:
        consumed = consumed_from_container(container_ounces, percentage)
    consumed = clamp_ounces(round_to_tenth(consumed))

    final_liquid = liquid_type or detected_liquid or "water"
    ounces = apply_hydration_multiplier(consumed, servings, final_liquid)

    return {
        "ounces": ounces,
        "classification": "disposable-bottle",
        "liquidType": final_liquid,
        "servings": servings or 1,
        "imageUrl": image_url,
        "containerCapacity": container_ounces,
        "productName": product_name,
        "barcode": barcode,
        "cached": cached is not None,
    }
