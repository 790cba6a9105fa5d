"""
Conexão Redis compartilhada pelo guard do LLM (circuit breaker e slots)

Sem REDIS_URL os chamadores recebem None e usam o estado in-memory do
próprio guard; isso vale só para um processo.
"""
import logging
from typing import Optional
import redis.asyncio as redis
from app.config import settings

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """
    Retorna o cliente singleton, criado na primeira chamada.

    Returns:
        Cliente Redis, ou None quando REDIS_URL está vazio (ou a conexão
        falhou em DEV_MODE)
    """
    global redis_client

    if not settings.REDIS_URL:
        return None

    if redis_client is None:
        try:
            redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=2,
            )
            logger.info(f"Redis client created for LLM guard: {settings.REDIS_URL}")
        except Exception as e:
            logger.error(f"Failed to create Redis client: {e}")
            if not settings.DEV_MODE:
                raise
            logger.warning("Redis unavailable, LLM guard will use in-memory state")
            return None

    return redis_client


async def redis_health() -> str:
    """Status para o /health/detailed: ok, not configured ou error: ..."""
    client = await get_redis()
    if client is None:
        return "not configured (in-memory guard)"
    try:
        await client.ping()
        return "ok"
    except Exception as e:
        return f"error: {str(e)}"


async def close_redis():
    """Fecha a conexão no shutdown da aplicação."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")
