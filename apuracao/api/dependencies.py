"""
Service wiring — builds use cases with concrete adapters.

Lazy singleton; routes receive it through FastAPI `Depends`, so tests
can swap it with `app.dependency_overrides`.
"""

import logging
from dataclasses import dataclass

from apuracao.config.settings import get_settings
from apuracao.core.interfaces.rule_repository import IRuleRepository
from apuracao.core.rules.calculation_engine import CalculationEngine
from apuracao.core.rules.formulas import default_registry
from apuracao.core.rules.validator import RuleValidator
from apuracao.core.services.pricing import MarginPolicy
from apuracao.core.use_cases.batch_process import BatchCoordinator
from apuracao.core.use_cases.extract_rules import RuleExtractionPipeline
from apuracao.core.use_cases.run_apuracao import ApuracaoOrchestrator
from apuracao.infrastructure.cache.ttl_cache import TTLCache
from apuracao.infrastructure.db.database import init_db
from apuracao.infrastructure.db.repository import ApuracaoRunRepository
from apuracao.infrastructure.llm.gemini_extractor import GeminiRuleExtractor
from apuracao.infrastructure.repository.memory_rule_repository import InMemoryRuleRepository
from apuracao.infrastructure.sources.json_item_source import JsonLineItemSource

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the routes need."""
    rules: IRuleRepository
    validator: RuleValidator
    orchestrator: ApuracaoOrchestrator
    batch: BatchCoordinator
    extraction: RuleExtractionPipeline | None
    pricing: MarginPolicy
    runs: ApuracaoRunRepository | None = None


_services: Services | None = None


def build_services() -> Services:
    """Factory — build every use case from Settings."""
    settings = get_settings()
    registry = default_registry()
    validator = RuleValidator(registry, confidence_threshold=settings.confidence_threshold)
    rules = InMemoryRuleRepository(validator, confidence_threshold=settings.confidence_threshold)
    item_source = JsonLineItemSource(settings.items_dir)
    cache = TTLCache(default_ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries)

    run_store = ApuracaoRunRepository(init_db())

    extraction = None
    if settings.llm_enabled and settings.gemini_api_key:
        extraction = RuleExtractionPipeline(
            extractor=GeminiRuleExtractor(
                api_key=settings.gemini_api_key,
                model_name=settings.gemini_model,
                formula_ids=registry.names(),
                timeout_seconds=settings.extraction_timeout_seconds,
            ),
            validator=validator,
            repository=rules,
            max_retries=settings.max_retries,
            backoff_seconds=settings.retry_backoff_seconds,
        )
    else:
        logger.info("LLM not configured: rule extraction disabled")

    orchestrator = ApuracaoOrchestrator(
        rule_repository=rules,
        item_source=item_source,
        calculation_engine=CalculationEngine(registry),
        extraction_pipeline=extraction if settings.auto_extract_rules else None,
        run_store=run_store,
        cache=cache,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        match_policy=settings.match_policy,
        run_timeout_seconds=settings.run_timeout_seconds,
    )
    batch = BatchCoordinator(
        orchestrator=orchestrator,
        item_source=item_source,
        cache=cache,
        concurrency=settings.batch_concurrency,
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )
    return Services(
        rules=rules,
        validator=validator,
        orchestrator=orchestrator,
        batch=batch,
        extraction=extraction,
        pricing=MarginPolicy(settings.margin_minimum, settings.margin_ideal, settings.margin_maximum),
        runs=run_store,
    )


def get_services() -> Services:
    """Lazy singleton."""
    global _services
    if _services is None:
        _services = build_services()
    return _services
