"""
Camada de sincronização do cliente (mesma lógica dos hooks do app mobile).

- GETs idempotentes com retry e backoff exponencial (1s, 2s, 4s... até 5s)
- Mutações sem retry genérico; add/delete fazem retry próprio e limitado
  por classe de erro
- Atualização otimista do total local com desfazimento em caso de falha
- Cache de respostas com invalidação seletiva por tipo de mutação
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
import httpx

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_DELAY = 1.0
MAX_DELAY = 5.0
MUTATION_MAX_ATTEMPTS = 3

# Classes de erro vistas pela interface
NETWORK = "network"
TIMEOUT = "timeout"
AUTH = "auth"
RATE_LIMIT = "rate_limit"
DATABASE = "database"
SERVER = "server"
CLIENT = "client"

# Erros em que a mutação pode ser tentada de novo
_RETRYABLE_MUTATION_ERRORS = (NETWORK, TIMEOUT, DATABASE)

USER_GOAL = "user-goal"
WATER_TODAY = "water-today"
WEEKLY_SUMMARY = "weekly-summary"
WATER_HISTORY = "water-history"
USER_STATS = "user-stats"

# Leitura crítica: se falhar, o carregamento inteiro falha
CRITICAL_READ = USER_GOAL

# Chaves de cache afetadas por cada mutação
INVALIDATIONS = {
    "add_entry": (WATER_TODAY, WEEKLY_SUMMARY, WATER_HISTORY, USER_STATS),
    "delete_entry": (WATER_TODAY, WEEKLY_SUMMARY, WATER_HISTORY, USER_STATS),
    "update_settings": (USER_GOAL, WATER_HISTORY, USER_STATS),
    "cleanup": (WATER_HISTORY, WEEKLY_SUMMARY),
}

Sleep = Callable[[float], Awaitable[Any]]


class SyncError(Exception):
    def __init__(
        self,
        message: str,
        error_type: str = SERVER,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.status_code = status_code
        self.payload = payload or {}


def classify_status(status_code: int) -> str:
    if status_code in (401, 403):
        return AUTH
    if status_code == 429:
        return RATE_LIMIT
    if status_code == 503:
        return DATABASE
    if status_code >= 500:
        return SERVER
    return CLIENT


def classify_exception(exc: Exception) -> str:
    if isinstance(exc, SyncError):
        return exc.error_type
    if isinstance(exc, httpx.TimeoutException):
        return TIMEOUT
    if isinstance(exc, httpx.TransportError):
        return NETWORK
    return SERVER


def error_from_response(response: httpx.Response) -> SyncError:
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    message = payload.get("error") or f"Request failed with status {response.status_code}"
    return SyncError(str(message), classify_status(response.status_code), response.status_code, payload)


def backoff_delay(attempt: int, initial_delay: float = INITIAL_DELAY, max_delay: float = MAX_DELAY) -> float:
    """attempt 0 -> 1s, 1 -> 2s, 2 -> 4s, depois 5s."""
    return min(initial_delay * (2 ** attempt), max_delay)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_DELAY,
    max_delay: float = MAX_DELAY,
    sleep: Sleep = asyncio.sleep,
    **kwargs,
) -> httpx.Response:
    """
    Executa a requisição. Apenas GET é repetido (falha de rede, timeout ou
    5xx); 4xx volta na hora. Outros métodos têm uma única tentativa.

    Returns:
        A última resposta recebida

    Raises:
        httpx.TransportError: sem resposta depois das tentativas
    """
    attempts = retries + 1 if method.upper() == "GET" else 1

    for attempt in range(attempts):
        last_try = attempt == attempts - 1
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if last_try:
                raise
            delay = backoff_delay(attempt, initial_delay, max_delay)
            logger.warning(f"{method} {url} failed ({e.__class__.__name__}), retrying in {delay}s")
            await sleep(delay)
            continue

        if response.status_code < 500 or last_try:
            return response

        delay = backoff_delay(attempt, initial_delay, max_delay)
        logger.warning(f"{method} {url} returned {response.status_code}, retrying in {delay}s")
        await sleep(delay)

    raise RuntimeError("unreachable")


class ResponseCache:
    """Cache simples por chave de endpoint, com TTL opcional."""

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, tuple] = {}

    def get(self, key: str) -> Optional[Any]:
        item = self._entries.get(key)
        if item is None:
            return None
        value, stored_at = item
        if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    def invalidate(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def invalidate_for(self, mutation: str) -> None:
        self.invalidate(*INVALIDATIONS.get(mutation, ()))

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


@dataclass
class SyncState:
    """Estado local da sessão; criado no login e descartado no logout."""
    daily_goal: Optional[float] = None
    settings: Dict[str, Any] = field(default_factory=dict)
    today_total: float = 0.0
    entries: List[Dict[str, Any]] = field(default_factory=list)
    weekly_summary: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = field(default_factory=list)
    stats: Optional[Dict[str, Any]] = None
    errors: Dict[str, str] = field(default_factory=dict)
    loaded: bool = False

    def reset(self) -> None:
        self.__init__()


class HydrationSyncClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        cookies: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        state: Optional[SyncState] = None,
        timeout: float = 15.0,
        sleep: Sleep = asyncio.sleep,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.client.headers.update(headers)
        if cookies:
            self.client.cookies.update(cookies)
        self.cache = cache or ResponseCache()
        self.state = state or SyncState()
        self._sleep = sleep

    async def aclose(self) -> None:
        await self.client.aclose()

    async def get_json(self, key: str, params: Optional[Dict[str, Any]] = None, use_cache: bool = True) -> Any:
        if use_cache and params is None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        response = await fetch_with_retry(self.client, "GET", f"/api/{key}", params=params, sleep=self._sleep)
        if response.status_code >= 400:
            raise error_from_response(response)

        data = response.json()
        if params is None:
            self.cache.set(key, data)
        return data

    async def load_initial_data(self) -> SyncState:
        """
        Busca as leituras iniciais em paralelo. Falha em user-goal aborta o
        carregamento; nas demais o estado fica parcial e o erro é anotado.

        Raises:
            SyncError: falha na leitura crítica
        """
        keys = [USER_GOAL, WATER_TODAY, WEEKLY_SUMMARY, WATER_HISTORY, USER_STATS]
        results = await asyncio.gather(*(self.get_json(key) for key in keys), return_exceptions=True)
        by_key = dict(zip(keys, results))

        critical = by_key[CRITICAL_READ]
        if isinstance(critical, BaseException):
            error_type = classify_exception(critical)
            logger.error(f"Initial load failed on {CRITICAL_READ} ({error_type}): {critical}")
            if isinstance(critical, SyncError):
                raise critical
            raise SyncError(f"Failed to load settings: {critical}", error_type) from critical

        state = self.state
        state.errors = {}
        state.settings = critical
        state.daily_goal = critical.get("dailyGoal")

        for key, result in by_key.items():
            if key == CRITICAL_READ:
                continue
            if isinstance(result, BaseException):
                state.errors[key] = classify_exception(result)
                logger.warning(f"Partial initial load: {key} failed ({state.errors[key]}): {result}")
                continue
            if key == WATER_TODAY:
                state.today_total = float(result.get("total") or 0)
                state.entries = list(result.get("entries") or [])
            elif key == WEEKLY_SUMMARY:
                state.weekly_summary = result
            elif key == WATER_HISTORY:
                state.history = list(result.get("history") or [])
            elif key == USER_STATS:
                state.stats = result

        state.loaded = True
        return state

    async def _mutate(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Retry próprio da mutação: só rede, timeout e banco indisponível."""
        last_error: Optional[SyncError] = None
        for attempt in range(MUTATION_MAX_ATTEMPTS):
            try:
                response = await fetch_with_retry(self.client, method, url, sleep=self._sleep, **kwargs)
            except httpx.TransportError as e:
                last_error = SyncError(str(e) or "Network error", classify_exception(e))
            else:
                if response.status_code < 400:
                    return response.json()
                last_error = error_from_response(response)

            if last_error.error_type not in _RETRYABLE_MUTATION_ERRORS or attempt == MUTATION_MAX_ATTEMPTS - 1:
                break
            delay = backoff_delay(attempt)
            logger.warning(f"{method} {url} failed ({last_error.error_type}), retry {attempt + 1} in {delay}s")
            await self._sleep(delay)

        raise last_error

    async def add_entry_optimistic(self, ounces: float, **fields: Any) -> Dict[str, Any]:
        """
        Soma no total local antes da confirmação do servidor; desfaz a soma
        se a gravação falhar.

        Raises:
            SyncError: com error_type para a mensagem certa na interface
        """
        state = self.state
        state.today_total = round(state.today_total + ounces, 2)

        body = {"ounces": ounces}
        body.update(fields)
        try:
            data = await self._mutate("POST", f"/api/{WATER_TODAY}", json=body)
        except SyncError:
            state.today_total = round(state.today_total - ounces, 2)
            raise

        entry = data.get("entry") or {}
        state.entries.append(entry)
        confirmed = entry.get("ounces")
        if confirmed is not None and confirmed != ounces:
            state.today_total = round(state.today_total - ounces + confirmed, 2)
        self.cache.invalidate_for("add_entry")
        return entry

    async def delete_entry_optimistic(self, entry_id: str) -> None:
        """Remove da lista local e do total; restaura ambos se o DELETE falhar."""
        state = self.state
        index = next((i for i, e in enumerate(state.entries) if e.get("id") == entry_id), None)
        removed = state.entries.pop(index) if index is not None else None
        ounces = float(removed.get("ounces") or 0) if removed else 0.0
        state.today_total = round(state.today_total - ounces, 2)

        try:
            await self._mutate("DELETE", f"/api/water-entry/{entry_id}")
        except SyncError:
            if removed is not None:
                state.entries.insert(index, removed)
            state.today_total = round(state.today_total + ounces, 2)
            raise

        self.cache.invalidate_for("delete_entry")

    async def save_settings(self, **fields: Any) -> Dict[str, Any]:
        """
        Salva preferências (POST user-goal) e atualiza o estado local com o
        que o servidor devolveu. Campos em camelCase, como na API.
        """
        data = await self._mutate("POST", f"/api/{USER_GOAL}", json=fields)
        saved = data.get("settings") or {}
        self.state.settings = saved
        self.state.daily_goal = saved.get("dailyGoal", data.get("calculatedGoal"))
        self.cache.invalidate_for("update_settings")
        return saved
