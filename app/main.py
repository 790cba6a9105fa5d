from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from slowapi.errors import RateLimitExceeded
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from app.config import settings
from app.database import engine
from app.database.redis import close_redis, redis_health
from app.routers import admin, analysis, cleanup, favorites, user, water, worker

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Inicializar limiter (por IP, antes de qualquer rota)
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI or settings.REDIS_URL or "memory://",
    default_limits=[settings.RATE_LIMIT_PER_IP],
    enabled=settings.RATE_LIMIT_ENABLED,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


app = FastAPI(
    title="Hydrate API",
    description="API backend do Hydrate (registro de hidratação)",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Adicionar limiter ao app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Todas as respostas de erro saem como {"error": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    # Diagnóstico exposto ao cliente de propósito (debug do app mobile)
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=503,
        content={
            "error": "Database error",
            "details": str(getattr(exc, "orig", None) or exc),
            "errorName": exc.__class__.__name__,
        },
    )


# Incluir routers
app.include_router(analysis.router, prefix=settings.API_PREFIX, tags=["analysis"])
app.include_router(water.router, prefix=settings.API_PREFIX, tags=["water"])
app.include_router(user.router, prefix=settings.API_PREFIX, tags=["user"])
app.include_router(favorites.router, prefix=settings.API_PREFIX, tags=["favorites"])
app.include_router(cleanup.router, prefix=settings.API_PREFIX, tags=["cleanup"])
app.include_router(worker.router, prefix=settings.API_PREFIX, tags=["worker"])
app.include_router(admin.router, prefix=settings.API_PREFIX, tags=["admin"])


@app.get("/")
async def root():
    return {"message": "Hydrate API está funcionando!"}


@app.get("/health")
async def health():
    """Health check básico"""
    return {"status": "healthy"}


@app.get("/health/detailed")
async def health_detailed():
    """Health check detalhado com status de dependências"""
    health_status = {
        "status": "healthy",
        "checks": {}
    }

    # Verificar Redis (guard do LLM)
    redis_status = await redis_health()
    health_status["checks"]["redis"] = redis_status
    if redis_status.startswith("error"):
        health_status["status"] = "degraded"

    # Verificar banco de dados
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["checks"]["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"

    # Verificar Celery
    try:
        from app.celery_app import celery_app
        stats = celery_app.control.inspect(timeout=1.0).stats()
        if stats:
            health_status["checks"]["celery"] = "ok"
        else:
            health_status["checks"]["celery"] = "no workers"
            health_status["status"] = "degraded"
    except Exception as e:
        health_status["checks"]["celery"] = f"error: {str(e)}"
        health_status["status"] = "degraded"

    health_status["checks"]["llm"] = "configured" if settings.OPENAI_API_KEY else "not configured"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


@app.get("/health/ready")
async def health_ready():
    """Readiness check - verifica se a aplicação está pronta para receber tráfego"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )


@app.get("/health/live")
async def health_live():
    """Liveness check - verifica se a aplicação está viva"""
    return {"status": "alive"}


@app.get("/health/db")
async def health_db():
    """Health check específico para o banco de dados."""
    try:
        with engine.connect() as conn:
            row = conn.execute(text("SELECT 1 as health_check")).fetchone()

        if row and row[0] == 1:
            return {
                "status": "healthy",
                "service": engine.dialect.name,
                "message": "Database connection successful"
            }
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "service": engine.dialect.name,
                "message": "Database query failed"
            }
        )
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "service": engine.dialect.name,
                "error": str(e)
            }
        )
