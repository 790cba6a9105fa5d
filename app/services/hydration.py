"""
Cálculos de hidratação: arredondamento, multiplicador por tipo de bebida e
conversão do contexto de consumo (porcentagem, duração, porções) em onças.
"""
import math
import logging
from typing import Optional, Union
from app.services.analysis_errors import AlcoholNotCountedError, InvalidAnalysisInput

logger = logging.getLogger(__name__)

MIN_CONSUMED_OZ = 0.5
MAX_CONTAINER_OZ = 128.0

MIN_MANUAL_OZ = 0.1
MAX_MANUAL_OZ = 500.0

# oz por segundo bebendo, conforme o tamanho do gole do usuário
SIP_RATES = {"small": 0.4, "medium": 0.6, "large": 0.85}

_ALCOHOL_TERMS = ("beer", "wine", "alcohol", "cocktail", "liquor", "vodka", "whiskey", "tequila")
_WATER_TERMS = ("water", "sparkling", "seltzer")
_SODA_TERMS = ("soda", "coke", "pepsi", "cola", "sprite", "fanta", "root beer")
_DIET_TERMS = ("diet", "zero")
_SPORTS_TERMS = ("gatorade", "powerade", "sports")
_ENERGY_TERMS = ("energy", "red bull", "monster")
_COFFEE_TEA_TERMS = ("coffee", "tea", "espresso", "latte", "cappuccino")
_MILK_TERMS = ("milk", "dairy")
_SMOOTHIE_TERMS = ("smoothie", "protein")


class InvalidEntryError(ValueError):
    """Valor de onças inválido para uma entrada manual"""
    pass


def _contains(text: str, terms) -> bool:
    return any(term in text for term in terms)


def _is_alcohol(text: str) -> bool:
    if "root beer" in text:
        return False
    return _contains(text, _ALCOHOL_TERMS)


def get_hydration_multiplier(liquid_type: Optional[str]) -> float:
    """
    Equivalência em água da bebida, por substring do tipo detectado.

    Examples:
        >>> get_hydration_multiplier("Diet Coke")
        0.9
        >>> get_hydration_multiplier("Gatorade")
        0.7
    """
    text = (liquid_type or "water").strip().lower()

    if _is_alcohol(text):
        return 0.0
    if _contains(text, _WATER_TERMS):
        return 1.0
    if _contains(text, _DIET_TERMS) and _contains(text, _SODA_TERMS):
        return 0.9
    if _contains(text, _SODA_TERMS):
        return 0.75
    if _contains(text, _SPORTS_TERMS):
        return 0.7
    if _contains(text, _ENERGY_TERMS):
        return 0.65
    if _contains(text, _COFFEE_TEA_TERMS):
        return 0.8
    if _contains(text, _MILK_TERMS):
        return 0.75
    if "juice" in text:
        return 0.7
    if _contains(text, _SMOOTHIE_TERMS):
        return 0.65
    return 1.0


def smart_round(value: float) -> float:
    """
    Quantiza em passos de 0.5 oz: fração >= 0.75 sobe, >= 0.25 vira meia onça.

    smart_round(2.10) == 2, smart_round(2.30) == 2.5, smart_round(2.80) == 3
    """
    whole = math.floor(value)
    fraction = value - whole
    if fraction >= 0.75:
        return float(whole + 1)
    if fraction >= 0.25:
        return whole + 0.5
    return float(whole)


def round_half_up(value: float, step: float) -> float:
    return math.floor(value / step + 0.5) * step


def round_to_half(value: float) -> float:
    return round_half_up(value, 0.5)


def round_to_tenth(value: float) -> float:
    return round(round_half_up(value, 0.1), 1)


def clamp_ounces(value: float) -> float:
    return max(MIN_CONSUMED_OZ, min(value, MAX_CONTAINER_OZ))


def parse_duration_seconds(duration: Union[str, int, float]) -> int:
    """Aceita "12 seconds", "12" ou 12."""
    try:
        if isinstance(duration, (int, float)):
            seconds = int(duration)
        else:
            seconds = int(str(duration).strip().split(" ")[0])
    except (TypeError, ValueError):
        raise InvalidAnalysisInput(f"Invalid duration: {duration}")
    if seconds <= 0:
        raise InvalidAnalysisInput(f"Invalid duration: {duration}")
    return seconds


def duration_to_ounces(duration: Union[str, int, float], sip_size: Optional[str]) -> float:
    seconds = parse_duration_seconds(duration)
    rate = SIP_RATES.get((sip_size or "medium").lower(), SIP_RATES["medium"])
    return seconds * rate


def consumed_from_container(container_ounces: float, percentage: Optional[float]) -> float:
    if percentage:
        return container_ounces * float(percentage) / 100
    return container_ounces


def apply_hydration_multiplier(consumed_ounces: float, servings: Optional[int], liquid_type: str) -> float:
    """
    Aplica porções e multiplicador e arredonda com smart_round.

    Raises:
        AlcoholNotCountedError: se a bebida vale 0 oz de água
    """
    multiplier = get_hydration_multiplier(liquid_type)
    if multiplier == 0:
        logger.warning(f"Alcohol detected ({liquid_type}), entry rejected")
        raise AlcoholNotCountedError("Alcohol is worth 0 oz of water")
    adjusted = consumed_ounces * (servings or 1) * multiplier
    return smart_round(adjusted)


def validate_manual_ounces(value) -> float:
    """Valida onças de entrada manual e arredonda para 2 casas."""
    try:
        ounces = float(value)
    except (TypeError, ValueError):
        raise InvalidEntryError("Ounces must be a number")
    if math.isnan(ounces) or ounces <= 0:
        raise InvalidEntryError("Ounces must be greater than 0")
    if ounces < MIN_MANUAL_OZ or ounces > MAX_MANUAL_OZ:
        raise InvalidEntryError(f"Ounces must be between {MIN_MANUAL_OZ} and {MAX_MANUAL_OZ}")
    return round(ounces, 2)
