"""
Cliente do LLM multimodal (OpenAI chat completions).

Uma chamada = uma tentativa: sem retry automático aqui, o erro sobe tipado
para o chamador decidir (fallback manual, "tentar novamente").
"""
import logging
from typing import Any, Dict, List, Optional
import openai
from app.config import settings
from app.middleware import llm_guard
from app.services.analysis_errors import (
    AnalysisError,
    AnalysisNetworkError,
    AnalysisParseError,
    AnalysisRateLimitError,
)

logger = logging.getLogger(__name__)


def image_content(prompt: str, image_data_url: str) -> List[Dict[str, Any]]:
    """Conteúdo multimodal: texto + imagem (data URL base64)."""
    return [
        {"type": "text", "text": prompt},
        {"type": "image_url", "image_url": {"url": image_data_url}},
    ]


class LLMClient:
    """
    Wrapper fino sobre openai.AsyncOpenAI que converte as exceções do SDK
    na hierarquia AnalysisError e alimenta o circuit breaker.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.timeout = timeout or settings.OPENAI_TIMEOUT
        if not self.api_key:
            logger.warning("OPENAI_API_KEY not configured, LLM calls will fail")
        self.client = openai.AsyncOpenAI(
            api_key=self.api_key or "missing",
            timeout=self.timeout,
            max_retries=0,
        )

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        max_tokens: int,
        operation: str = "llm",
    ) -> str:
        """
        Executa uma chamada de chat completion e retorna o texto da resposta.

        Args:
            messages: Mensagens no formato da API
            model: Modelo a usar
            max_tokens: Limite de tokens da resposta
            operation: Nome para logs

        Returns:
            Conteúdo textual (strip)

        Raises:
            AnalysisNetworkError: timeout ou falha de conexão
            AnalysisRateLimitError: 429 do provedor
            AnalysisParseError: resposta vazia
            AnalysisError: outros erros HTTP
        """
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as e:
            await llm_guard.record_failure()
            logger.error(f"{operation}: LLM request timed out after {self.timeout}s")
            raise AnalysisNetworkError(f"Analysis request timed out: {e}") from e
        except openai.APIConnectionError as e:
            await llm_guard.record_failure()
            logger.error(f"{operation}: LLM connection error: {e}")
            raise AnalysisNetworkError(f"Could not reach analysis service: {e}") from e
        except openai.RateLimitError as e:
            await llm_guard.record_failure()
            logger.error(f"{operation}: LLM rate limit (429)")
            raise AnalysisRateLimitError("Analysis service is rate limited, please try again shortly") from e
        except openai.APIStatusError as e:
            await llm_guard.record_failure()
            logger.error(f"{operation}: LLM API error {e.status_code}: {e}")
            raise AnalysisError(f"Analysis service error ({e.status_code})") from e

        content = ""
        if response.choices:
            content = (response.choices[0].message.content or "").strip()
        if not content:
            logger.error(f"{operation}: empty response from LLM")
            raise AnalysisParseError("Analysis service returned an empty response")

        logger.info(f"{operation}: LLM response received ({len(content)} chars)")
        return content


_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Retorna o cliente LLM singleton."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


async def close_llm_client() -> None:
    """
    Fecha e descarta o singleton.

    O pool HTTP do AsyncOpenAI fica preso ao event loop que o criou; quem
    roda cada execução num loop novo (asyncio.run nas tasks do Celery)
    precisa chamar isto antes do loop terminar.
    """
    global _llm_client
    if _llm_client is not None:
        await _llm_client.client.close()
        _llm_client = None
