"""
Guard das chamadas ao LLM usando Redis: circuit breaker e limite de
requisições simultâneas (por usuário e global)
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional, Union
from uuid import UUID
from app.database.redis import get_redis
from app.config import settings
from app.services.analysis_errors import AnalysisRateLimitError

logger = logging.getLogger(__name__)

CIRCUIT_OPEN_MESSAGE = (
    "Analysis service temporarily unavailable due to high error rate. "
    "Please try again in a few seconds."
)
USER_BUSY_MESSAGE = "You have a request currently processing. Please wait for it to complete."
SERVER_BUSY_MESSAGE = "Server is currently processing maximum requests. Please try again in a moment."

# Segurança: slots órfãos expiram mesmo se o processo morrer no meio da chamada
_SLOT_TTL_SECONDS = 120

# Fallback in-memory para quando Redis não estiver disponível
_memory_state: dict = {
    "errors": [],
    "open_until": 0.0,
    "total_in_flight": 0,
    "user_in_flight": {},
}


def _key(name: str) -> str:
    return f"{settings.RATE_LIMIT_PREFIX}llm:{name}"


def reset_memory_state() -> None:
    _memory_state["errors"] = []
    _memory_state["open_until"] = 0.0
    _memory_state["total_in_flight"] = 0
    _memory_state["user_in_flight"] = {}


async def check_circuit() -> None:
    """
    Levanta AnalysisRateLimitError se o circuito estiver aberto.
    """
    redis = await get_redis()
    if redis is None:
        return _check_circuit_in_memory()
    try:
        if await redis.exists(_key("circuit:open")):
            logger.warning("LLM circuit breaker OPEN, rejecting request")
            raise AnalysisRateLimitError(CIRCUIT_OPEN_MESSAGE)
    except AnalysisRateLimitError:
        raise
    except Exception as e:
        logger.error(f"Error checking LLM circuit breaker: {e}")
        if settings.DEV_MODE:
            return _check_circuit_in_memory()
        # Em produção, se Redis falhar, permitir requisição (fail open)


def _check_circuit_in_memory() -> None:
    if _memory_state["open_until"] > time.time():
        logger.warning("LLM circuit breaker OPEN (in-memory), rejecting request")
        raise AnalysisRateLimitError(CIRCUIT_OPEN_MESSAGE)


async def record_failure() -> None:
    """Registra um erro do LLM; abre o circuito ao atingir o limiar na janela."""
    redis = await get_redis()
    if redis is None:
        return _record_failure_in_memory()
    try:
        errors_key = _key("circuit:errors")
        count = await redis.incr(errors_key)
        if count == 1:
            await redis.expire(errors_key, settings.LLM_CIRCUIT_WINDOW_SECONDS)
        logger.info(f"LLM error recorded: {count}/{settings.LLM_CIRCUIT_THRESHOLD}")
        if count >= settings.LLM_CIRCUIT_THRESHOLD:
            await redis.set(_key("circuit:open"), "1", ex=settings.LLM_CIRCUIT_RESET_SECONDS)
            await redis.delete(errors_key)
            logger.error(f"LLM circuit breaker OPEN - {count} errors in window")
    except Exception as e:
        logger.error(f"Error recording LLM failure: {e}")
        if settings.DEV_MODE:
            _record_failure_in_memory()


def _record_failure_in_memory() -> None:
    now = time.time()
    window_start = now - settings.LLM_CIRCUIT_WINDOW_SECONDS
    errors = [ts for ts in _memory_state["errors"] if ts > window_start]
    errors.append(now)
    if len(errors) >= settings.LLM_CIRCUIT_THRESHOLD:
        _memory_state["open_until"] = now + settings.LLM_CIRCUIT_RESET_SECONDS
        errors = []
        logger.error("LLM circuit breaker OPEN (in-memory)")
    _memory_state["errors"] = errors


async def acquire_slot(user_id: Optional[Union[UUID, str]]) -> None:
    """
    Reserva um slot de requisição simultânea para o usuário.

    Raises:
        AnalysisRateLimitError: usuário já tem uma análise em andamento ou o
            servidor atingiu o máximo global
    """
    redis = await get_redis()
    if redis is None:
        return _acquire_slot_in_memory(user_id)
    try:
        total_key = _key("inflight:total")
        total = await redis.incr(total_key)
        await redis.expire(total_key, _SLOT_TTL_SECONDS)
        if total > settings.LLM_MAX_TOTAL_IN_FLIGHT:
            await redis.decr(total_key)
            raise AnalysisRateLimitError(SERVER_BUSY_MESSAGE)

        if user_id is not None:
            user_key = _key(f"inflight:user:{user_id}")
            count = await redis.incr(user_key)
            await redis.expire(user_key, _SLOT_TTL_SECONDS)
            if count > settings.LLM_MAX_USER_IN_FLIGHT:
                await redis.decr(user_key)
                await redis.decr(total_key)
                logger.warning(f"LLM request rejected, user {user_id} already in flight")
                raise AnalysisRateLimitError(USER_BUSY_MESSAGE)
    except AnalysisRateLimitError:
        raise
    except Exception as e:
        logger.error(f"Error acquiring LLM slot: {e}")
        if settings.DEV_MODE:
            _acquire_slot_in_memory(user_id)


def _acquire_slot_in_memory(user_id) -> None:
    if _memory_state["total_in_flight"] >= settings.LLM_MAX_TOTAL_IN_FLIGHT:
        raise AnalysisRateLimitError(SERVER_BUSY_MESSAGE)
    if user_id is not None:
        key = str(user_id)
        if _memory_state["user_in_flight"].get(key, 0) >= settings.LLM_MAX_USER_IN_FLIGHT:
            logger.warning(f"LLM request rejected, user {user_id} already in flight")
            raise AnalysisRateLimitError(USER_BUSY_MESSAGE)
        _memory_state["user_in_flight"][key] = _memory_state["user_in_flight"].get(key, 0) + 1
    _memory_state["total_in_flight"] += 1


async def release_slot(user_id: Optional[Union[UUID, str]]) -> None:
    redis = await get_redis()
    if redis is None:
        return _release_slot_in_memory(user_id)
    try:
        await redis.decr(_key("inflight:total"))
        if user_id is not None:
            await redis.decr(_key(f"inflight:user:{user_id}"))
    except Exception as e:
        logger.error(f"Error releasing LLM slot: {e}")
        if settings.DEV_MODE:
            _release_slot_in_memory(user_id)


def _release_slot_in_memory(user_id) -> None:
    _memory_state["total_in_flight"] = max(0, _memory_state["total_in_flight"] - 1)
    if user_id is not None:
        key = str(user_id)
        remaining = max(0, _memory_state["user_in_flight"].get(key, 0) - 1)
        if remaining:
            _memory_state["user_in_flight"][key] = remaining
        else:
            _memory_state["user_in_flight"].pop(key, None)


@asynccontextmanager
async def guarded(user_id: Optional[Union[UUID, str]]):
    """
    Envolve uma operação de análise completa (todas as chamadas ao LLM de
    uma requisição) com circuit breaker e slot de concorrência.
    """
    await check_circuit()
    await acquire_slot(user_id)
    try:
        yield
    finally:
        await release_slot(user_id)
