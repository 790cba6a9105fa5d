"""
Serviço de análise de bebidas por imagem (dois passes) e por descrição.

Nenhuma função aqui grava entradas: a persistência acontece quando o
cliente confirma o resultado (POST /water-today).
"""
import logging
import re
from typing import Any, Dict, Optional, Tuple
from app.config import settings
from app.middleware import llm_guard
from app.services import storage_service
from app.services.analysis_errors import AnalysisParseError, NoLiquidDetectedError
from app.services.hydration import (
    MAX_CONTAINER_OZ,
    apply_hydration_multiplier,
    clamp_ounces,
    consumed_from_container,
    duration_to_ounces,
    round_to_half,
    round_to_tenth,
)
from app.services.llm_client import LLMClient, get_llm_client, image_content
from app.services.prompts import (
    TEXT_SYSTEM_PROMPT,
    build_decision_prompt,
    build_geometric_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_CLASSIFICATION = "reusable-bottle"
MIN_CONTAINER_OZ = 1.0

_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")
_FINAL_ANSWER_RE = re.compile(r"FINAL ANSWER:\s*(\d+\.?\d*)\s*oz", re.IGNORECASE)
_TEXT_LIQUID_RE = re.compile(r"LIQUID:\s*([^\n|]+?)(?:\s*\||$)", re.IGNORECASE | re.MULTILINE)


def parse_decision(decision: str) -> Tuple[float, str, Optional[str]]:
    """
    Interpreta a resposta do passe 2.

    Returns:
        (capacidade em oz arredondada a 0.5, classificação, líquido detectado)

    Raises:
        NoLiquidDetectedError: resposta NO_WATER
        AnalysisParseError: capacidade ausente ou fora de 1..128 oz
    """
    normalized = " ".join(decision.split())
    upper = normalized.upper()
    classification = DEFAULT_CLASSIFICATION
    liquid_type: Optional[str] = None
    container_ounces: Optional[float] = None

    if upper.startswith("NO_WATER"):
        _, _, reason = normalized.partition(":")
        raise NoLiquidDetectedError(
            reason.strip() or "Could not detect a liquid container in this image."
        )

    if upper.startswith("ESTIMATE:"):
        parts = [part.strip() for part in normalized.split(":")]
        # o modelo às vezes manda a unidade junto ("16.9 oz")
        match = _NUMBER_RE.search(parts[1]) if len(parts) > 1 else None
        if match:
            container_ounces = float(match.group(1))
        if len(parts) > 2 and parts[2]:
            classification = parts[2]
        if len(parts) > 3 and parts[3]:
            liquid_type = parts[3].lower()
    else:
        # Formato não reconhecido: tenta o primeiro número da resposta
        logger.warning(f"Decision format not recognized, parsing as number: \"{normalized[:100]}\"")
        match = _NUMBER_RE.search(normalized)
        if match:
            container_ounces = float(match.group(1))
        liquid_type = "water"

    if container_ounces is None or not (MIN_CONTAINER_OZ <= container_ounces <= MAX_CONTAINER_OZ):
        logger.error(f"Invalid container ounces: {container_ounces}, model returned: \"{normalized[:100]}\"")
        raise AnalysisParseError(
            f"Could not determine container size from image. GPT returned: {normalized[:100]}"
        )

    return round_to_half(container_ounces), classification, liquid_type


async def analyze_image(
    image_b64: str,
    mime_type: str,
    hand_size: str = "medium",
    sip_size: str = "medium",
    percentage: Optional[float] = None,
    duration: Optional[Any] = None,
    servings: Optional[int] = 1,
    liquid_type: Optional[str] = None,
    guard_user: Optional[Any] = None,
    llm: Optional[LLMClient] = None,
) -> Dict[str, Any]:
    """
    Estima o volume consumido a partir da foto de um recipiente.

    A imagem é enviada ao storage ANTES da classificação; a URL volta no
    resultado. Em modo duração o passe 1 é pulado (volume = segundos x
    taxa do gole) e o passe 2 só classifica.

    Args:
        image_b64: Base64 já limpo (storage_service.clean_base64)
        mime_type: MIME normalizado
        hand_size: small | medium | large (corrige o viés de percepção)
        sip_size: small | medium | large (taxa oz/s no modo duração)
        percentage: Porcentagem do recipiente bebida
        duration: Duração bebendo ("12 seconds")
        servings: Porções
        liquid_type: Tipo informado pelo usuário (tem precedência)
        guard_user: Chave do slot de concorrência (None no worker)
        llm: Cliente LLM (injeção em testes)

    Returns:
        dict com ounces, classification, liquidType, servings, imageUrl,
        containerCapacity, matchedBottleId

    Raises:
        AnalysisError e subclasses
    """
    llm = llm or get_llm_client()

    image_url = await storage_service.upload_image(image_b64, mime_type)
    data_url = storage_service.to_data_url(image_b64, mime_type)

    async with llm_guard.guarded(guard_user):
        calculated_ounces: Optional[float] = None
        if duration:
            calculated_ounces = duration_to_ounces(duration, sip_size)
            first_pass = f"Duration-based calculation: {calculated_ounces:.1f} oz"
            logger.info(f"Duration mode ({duration}, sip={sip_size}): {calculated_ounces:.1f} oz")
        else:
            first_pass = await llm.complete(
                messages=[{"role": "user", "content": image_content(build_geometric_prompt(hand_size), data_url)}],
                model=settings.OPENAI_VISION_MODEL,
                max_tokens=150,
                operation="analyze-water:geometric",
            )
            logger.info(f"Pass 1 analysis: {first_pass[:200]}")

        decision = await llm.complete(
            messages=[{"role": "user", "content": image_content(
                build_decision_prompt(first_pass, calculated_ounces), data_url
            )}],
            model=settings.OPENAI_VISION_MODEL,
            max_tokens=80,
            operation="analyze-water:decision",
        )
        logger.info(f"Pass 2 raw decision: \"{decision}\"")

    container_ounces, classification, detected_liquid = parse_decision(decision)

    if calculated_ounces is not None:
        consumed = calculated_ounces
    else:
        consumed = consumed_from_container(container_ounces, percentage)
    consumed = clamp_ounces(round_to_half(consumed))

    final_liquid = liquid_type or detected_liquid or "water"
    ounces = apply_hydration_multiplier(consumed, servings, final_liquid)

    logger.info(f"Analysis complete: {ounces}oz ({final_liquid}, {classification})")
    return {
        "ounces": ounces,
        "classification": classification,
        "liquidType": final_liquid,
        "servings": servings or 1,
        "imageUrl": image_url,
        "containerCapacity": container_ounces,
        "matchedBottleId": None,
    }


def parse_text_answer(content: str) -> Tuple[float, str]:
    """
    Extrai "FINAL ANSWER: N oz | LIQUID: tipo".

    Sem FINAL ANSWER a descrição deve ser refeita: não há chute numérico.
    """
    match = _FINAL_ANSWER_RE.search(content)
    if not match:
        raise AnalysisParseError(
            "Could not understand that description. Please describe what and how much you drank."
        )
    ounces = float(match.group(1))

    liquid_match = _TEXT_LIQUID_RE.search(content)
    liquid_type = liquid_match.group(1).strip().lower() if liquid_match else "water"
    return ounces, liquid_type or "water"


async def analyze_text(
    description: str,
    guard_user: Optional[Any] = None,
    llm: Optional[LLMClient] = None,
) -> Dict[str, Any]:
    """
    Estima onças a partir de uma descrição livre ("a venti iced coffee").

    Raises:
        AnalysisError e subclasses (AlcoholNotCountedError para álcool)
    """
    llm = llm or get_llm_client()

    async with llm_guard.guarded(guard_user):
        content = await llm.complete(
            messages=[
                {"role": "system", "content": TEXT_SYSTEM_PROMPT},
                {"role": "user", "content": description},
            ],
            model=settings.OPENAI_TEXT_MODEL,
            max_tokens=300,
            operation="analyze-text",
        )

    raw_ounces, liquid_type = parse_text_answer(content)
    if raw_ounces <= 0:
        raise AnalysisParseError("Description did not contain a drinkable amount")

    ounces = apply_hydration_multiplier(round_to_tenth(raw_ounces), 1, liquid_type)
    logger.info(f"Text analysis complete: {ounces}oz ({liquid_type})")
    return {
        "ounces": ounces,
        "classification": "description",
        "liquidType": liquid_type,
        "servings": 1,
        "description": description,
    }
