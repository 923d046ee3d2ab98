"""
FastAPI Application — Apuração Engine.

Architecture:
  - Rule repository (in memory) + LLM rule extraction (Gemini)
  - Calculation engine over a registry of named formulas
  - SQLite (dev) / PostgreSQL (prod) append-only run store
  - TTL cache for runs and batch idempotency
"""

import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apuracao.api.dependencies import Services, get_services
from apuracao.api.routes.apuracao import router as apuracao_router
from apuracao.api.routes.rules import router as rules_router
from apuracao.config.settings import get_settings
from apuracao.core.rules.formulas import default_registry

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Apuração Engine",
    description="Rule-based fiscal assessment: rule extraction, per-item calculation, totals and confidence.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rules_router, prefix="/api/v1", tags=["Rules"])
app.include_router(apuracao_router, prefix="/api/v1", tags=["Apuração"])


# ── Startup ──
@app.on_event("startup")
async def startup():
    """Build services (creates DB tables)."""
    get_services()
    logger.info("Apuração Engine started")


@app.get("/api/v1/formulas")
async def list_formulas():
    """Formula ids accepted in calculation steps."""
    registry = default_registry()
    return [
        {"name": name, "arity": registry.get(name).arity, "description": registry.get(name).description}
        for name in registry.names()
    ]


@app.get("/api/v1/stats")
async def get_stats(services: Services = Depends(get_services)):
    """Aggregated run statistics."""
    if services.runs is None:
        return {"total": 0}
    return services.runs.get_stats()


# ── Health ──
@app.get("/health")
async def health():
    db_type = "PostgreSQL" if "postgres" in settings.database_url else "SQLite"
    return {
        "status": "ok",
        "version": "1.0.0",
        "database": db_type,
        "llm_enabled": settings.llm_enabled and bool(settings.gemini_api_key),
        "match_policy": settings.match_policy,
    }
