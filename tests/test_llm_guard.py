"""
Testes do guard do LLM (fallback in-memory: REDIS_URL vazio nos testes)
"""
import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.config import settings
from app.middleware import llm_guard
from app.services.analysis_errors import AnalysisNetworkError, AnalysisRateLimitError
from app.services.llm_client import LLMClient


@pytest.mark.asyncio
async def test_circuit_opens_after_threshold():
    for _ in range(settings.LLM_CIRCUIT_THRESHOLD - 1):
        await llm_guard.record_failure()
    await llm_guard.check_circuit()

    await llm_guard.record_failure()
    with pytest.raises(AnalysisRateLimitError, match="temporarily unavailable"):
        await llm_guard.check_circuit()


@pytest.mark.asyncio
async def test_circuit_closes_after_reset_period():
    with patch("app.middleware.llm_guard.time.time", return_value=1000.0):
        for _ in range(settings.LLM_CIRCUIT_THRESHOLD):
            await llm_guard.record_failure()

    with patch("app.middleware.llm_guard.time.time", return_value=1000.0 + settings.LLM_CIRCUIT_RESET_SECONDS + 1):
        await llm_guard.check_circuit()


@pytest.mark.asyncio
async def test_one_request_in_flight_per_user():
    async with llm_guard.guarded("user-1"):
        with pytest.raises(AnalysisRateLimitError, match="currently processing"):
            await llm_guard.acquire_slot("user-1")
        # outro usuário não é afetado
        async with llm_guard.guarded("user-2"):
            assert llm_guard._memory_state["total_in_flight"] == 2

    assert llm_guard._memory_state["total_in_flight"] == 0


@pytest.mark.asyncio
async def test_global_in_flight_limit():
    with patch.object(settings, "LLM_MAX_TOTAL_IN_FLIGHT", 1):
        await llm_guard.acquire_slot(None)
        with pytest.raises(AnalysisRateLimitError, match="maximum requests"):
            await llm_guard.acquire_slot("user-9")


@pytest.mark.asyncio
async def test_llm_client_records_failures_and_maps_errors():
    client = LLMClient(api_key="sk-test")
    client.client = MagicMock()
    client.client.chat.completions.create = AsyncMock(
        side_effect=openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    )

    with pytest.raises(AnalysisNetworkError):
        await client.complete(messages=[{"role": "user", "content": "hi"}], model="gpt-4o-mini", max_tokens=10, operation="test")

    assert len(llm_guard._memory_state["errors"]) == 1
