"""
Use Case: Run Apuração — Implementação COMPLETA.

Orquestra: [Extração] → Snapshot de regras → Itens → Regras por item
→ Totais → Confiança → Observações → Persistência/Cache.
Mede latência de cada etapa. Nunca lança: falhas viram apuração FAILED.
"""

import hashlib
import logging
import time
import uuid
from datetime import date

from apuracao.core.entities.apuracao_run import ApuracaoRun, RunStatus, Totals
from apuracao.core.entities.line_item import LineItem
from apuracao.core.entities.rule import Rule
from apuracao.core.errors import RunFailure
from apuracao.core.interfaces.cache import ICache
from apuracao.core.interfaces.line_item_source import ILineItemSource
from apuracao.core.interfaces.rule_repository import IRuleRepository
from apuracao.core.interfaces.run_store import IRunStore
from apuracao.core.rules.calculation_engine import CalculationEngine
from apuracao.core.rules.condition_evaluator import matches
from apuracao.core.services.aggregator import aggregate
from apuracao.core.services.confidence import ConfidenceScorer
from apuracao.core.use_cases.extract_rules import ExtractionReport, RuleExtractionPipeline

logger = logging.getLogger(__name__)

MATCH_ALL = "all"
MATCH_FIRST = "first"


class ApuracaoOrchestrator:
    """
    Use Case: empresa + período → ApuracaoRun.

    Dependency Injection: todas as dependências vêm pelo construtor.
    Dependências opcionais (extração, store, cache) podem ser None.
    """

    def __init__(
        self,
        rule_repository: IRuleRepository,
        item_source: ILineItemSource,
        calculation_engine: CalculationEngine | None = None,
        scorer: ConfidenceScorer | None = None,
        extraction_pipeline: RuleExtractionPipeline | None = None,
        run_store: IRunStore | None = None,
        cache: ICache | None = None,
        cache_ttl_seconds: int = 3600,
        match_policy: str = MATCH_ALL,
        run_timeout_seconds: float | None = None,
    ):
        if match_policy not in (MATCH_ALL, MATCH_FIRST):
            raise ValueError(f"Unknown match policy: {match_policy}")
        self._rules = rule_repository
        self._items = item_source
        self._engine = calculation_engine or CalculationEngine()
        self._scorer = scorer or ConfidenceScorer()
        self._extraction = extraction_pipeline
        self._store = run_store
        self._cache = cache
        self._cache_ttl = cache_ttl_seconds
        self._match_policy = match_policy
        self._timeout = run_timeout_seconds

    def execute(
        self,
        company_id: str,
        period: str,
        items: list[LineItem] | None = None,
        source_text: str | None = None,
        run_date: date | None = None,
    ) -> ApuracaoRun:
        """
        Executa a apuração completa.

        1. Extração de regras (opcional, se houver texto-fonte)
        2. Snapshot imutável das regras elegíveis
        3. Itens do período (ou os itens recebidos)
        4. Todas as regras que casam, por prioridade decrescente
        5. Totais, confiança e observações
        """
        run_id = f"apuracao_{company_id}_{period}_{uuid.uuid4().hex[:8]}"
        stage_latencies: dict[str, float] = {}
        t_start = time.perf_counter()

        try:
            # ── 1. Extração ────────────────────────────────
            report = None
            if source_text and self._extraction is not None:
                t0 = time.perf_counter()
                report = self._extraction.run(company_id, source_text)
                stage_latencies["extraction_ms"] = round((time.perf_counter() - t0) * 1000, 2)

            # ── 2. Snapshot de regras ──────────────────────
            rules = self._rules.snapshot(company_id, on_date=run_date)

            # ── 3. Itens ───────────────────────────────────
            t0 = time.perf_counter()
            if items is None:
                try:
                    items = self._items.fetch_period_items(company_id, period)
                except Exception as e:
                    raise RunFailure(f"Line item source unavailable: {e}") from e
            stage_latencies["items_ms"] = round((time.perf_counter() - t0) * 1000, 2)

            # ── 4. Regras por item ─────────────────────────
            t0 = time.perf_counter()
            processed = []
            for item in items:
                if self._timeout is not None and time.perf_counter() - t_start > self._timeout:
                    raise RunFailure(f"Run exceeded timeout of {self._timeout}s")
                processed.append(self.evaluate_item(item, rules))
            stage_latencies["rules_ms"] = round((time.perf_counter() - t0) * 1000, 2)

            # ── 5. Totais + confiança ──────────────────────
            totals = aggregate(processed)
            degraded = report is not None and report.degraded
            breakdown = self._scorer.breakdown(processed, totals, extraction_degraded=degraded)

            run = ApuracaoRun(
                id=run_id,
                company_id=company_id,
                period=period,
                status=RunStatus.COMPLETED,
                rules_applied=rules,
                items=tuple(processed),
                totals=totals,
                confidence=breakdown.score,
                observations=tuple(self._observations(processed, rules, totals, report) + breakdown.reasons),
                latency_ms=round((time.perf_counter() - t_start) * 1000, 2),
            )
            logger.info(
                f"Apuração {run_id} completed: {len(processed)} items, {len(rules)} rules, "
                f"confidence {run.confidence:g}% ({run.latency_ms}ms) {stage_latencies}"
            )

        except Exception as e:
            logger.exception(f"Apuração {run_id} failed")
            run = ApuracaoRun(
                id=run_id,
                company_id=company_id,
                period=period,
                status=RunStatus.FAILED,
                totals=Totals(),
                confidence=0.0,
                observations=(f"Run failed: {e}",),
                latency_ms=round((time.perf_counter() - t_start) * 1000, 2),
            )

        self._persist(run)
        return run

    def evaluate_item(self, item: LineItem, rules: tuple[Rule, ...]) -> LineItem:
        """
        Aplica as regras (já ordenadas por prioridade) a um item.

        Função pura de (item, snapshot): seguro para paralelizar.
        Falha de uma regra fica registrada no próprio item.
        """
        for rule in rules:
            try:
                if not matches(item, rule):
                    continue
                item = self._engine.apply_rule(item, rule)
            except Exception as e:
                logger.warning(f"Rule {rule.id} failed on {item.document_ref}: {e}")
                item = item.with_warning(f"Rule {rule.id} failed: {e}")
                continue
            if self._match_policy == MATCH_FIRST:
                break
        return item

    def get_run(self, run_id: str) -> dict | None:
        """Apuração por id: cache primeiro, depois o store."""
        if self._cache is not None:
            cached = self._cache.get(self._cache_key(run_id))
            if cached is not None:
                return cached.to_dict()
        if self._store is not None:
            return self._store.get(run_id)
        return None

    def rule_set_version(self, company_id: str, run_date: date | None = None) -> str:
        """Hash dos ids das regras vigentes; muda a cada admissão ou desativação."""
        rules = self._rules.snapshot(company_id, on_date=run_date or date.today())
        ids = "|".join(sorted(rule.id for rule in rules))
        return hashlib.sha256(ids.encode("utf-8")).hexdigest()

    def _persist(self, run: ApuracaoRun) -> None:
        if self._cache is not None:
            self._cache.set(self._cache_key(run.id), run, self._cache_ttl)
        if self._store is not None:
            try:
                self._store.save(run)
            except Exception as e:
                logger.warning(f"Could not persist run {run.id}: {e}")

    @staticmethod
    def _cache_key(run_id: str) -> str:
        return f"apuracao:{run_id}"

    @staticmethod
    def _observations(
        items: list[LineItem],
        rules: tuple[Rule, ...],
        totals: Totals,
        report: ExtractionReport | None,
    ) -> list[str]:
        observations = [f"{len(items)} items processed with {len(rules)} active rules"]

        matched = sum(1 for i in items if i.applied_rule_ids)
        if items:
            observations.append(f"{matched} of {len(items)} items matched at least one rule")

        with_warnings = sum(1 for i in items if i.warnings)
        if with_warnings:
            observations.append(f"{with_warnings} items carry processing warnings")

        if totals.substitution_amount > totals.tax_amount:
            observations.append("Substitution tax exceeds principal tax; review ST rules")

        if totals.presumed_credit:
            observations.append(f"Presumed credit of {totals.presumed_credit:.2f} deducted from balance")

        if report is not None:
            if report.degraded:
                observations.append(f"Rule extraction degraded, using existing rules: {report.failure}")
            else:
                observations.append(
                    f"Rule extraction admitted {len(report.admitted)} rules, rejected {len(report.rejected)}"
                )
        return observations
