"""
Use Case: Extract Rules

Texto bruto → extrator (IA) → validador → repositório.
Falha do extrator nunca chega ao chamador: o relatório volta vazio
e a apuração segue com o conjunto de regras existente.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from apuracao.core.entities.rule import Rule
from apuracao.core.errors import ExtractionFailure, ValidationRejection
from apuracao.core.interfaces.rule_extractor import ExtractionOk, ExtractionResult, IRuleExtractor
from apuracao.core.interfaces.rule_repository import IRuleRepository
from apuracao.core.rules.validator import RuleValidator

logger = logging.getLogger(__name__)


@dataclass
class RejectedCandidate:
    name: str
    reason: str


@dataclass
class ExtractionReport:
    """Resultado de uma rodada de extração."""
    company_id: str
    admitted: list[Rule] = field(default_factory=list)
    rejected: list[RejectedCandidate] = field(default_factory=list)
    failure: str | None = None
    attempts: int = 0
    latency_ms: float = 0.0

    @property
    def degraded(self) -> bool:
        return self.failure is not None


class RuleExtractionPipeline:
    """
    Use Case: extrai, valida e admite regras de uma empresa.

    Dependency Injection: extrator, validador e repositório vêm pelo construtor.
    """

    def __init__(
        self,
        extractor: IRuleExtractor,
        validator: RuleValidator,
        repository: IRuleRepository,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._extractor = extractor
        self._validator = validator
        self._repository = repository
        self._max_retries = max(0, max_retries)
        self._backoff = backoff_seconds
        self._sleep = sleep

    def run(self, company_id: str, source_text: str) -> ExtractionReport:
        t0 = time.perf_counter()
        report = ExtractionReport(company_id=company_id)

        result = self._extract_with_retries(source_text, report)
        if isinstance(result, ExtractionFailure):
            report.failure = result.reason
            report.latency_ms = round((time.perf_counter() - t0) * 1000, 2)
            logger.warning(
                f"Rule extraction failed for {company_id} after {report.attempts} attempts: {result.reason}"
            )
            return report

        accepted: list[Rule] = []
        for raw in result.candidates:
            try:
                accepted.append(self._validator.validate_candidate(raw, company_id=company_id))
            except ValidationRejection as e:
                logger.warning(f"Candidate rule rejected [{company_id}]: {e.rule_name}: {e.reason}")
                report.rejected.append(RejectedCandidate(name=e.rule_name, reason=e.reason))

        with self._repository.writer_lock(company_id):
            for rule in accepted:
                try:
                    report.admitted.append(self._repository.admit(company_id, rule))
                except ValidationRejection as e:
                    report.rejected.append(RejectedCandidate(name=e.rule_name, reason=e.reason))

        report.latency_ms = round((time.perf_counter() - t0) * 1000, 2)
        logger.info(
            f"Rule extraction for {company_id}: {len(report.admitted)} admitted, "
            f"{len(report.rejected)} rejected ({report.latency_ms}ms)"
        )
        return report

    def _extract_with_retries(self, source_text: str, report: ExtractionReport) -> ExtractionResult:
        result: ExtractionResult = ExtractionFailure("extraction not attempted")
        for attempt in range(self._max_retries + 1):
            if attempt:
                self._sleep(self._backoff * (2 ** (attempt - 1)))
            report.attempts = attempt + 1
            try:
                result = self._extractor.extract(source_text)
            except Exception as e:
                result = ExtractionFailure(f"extractor raised: {e}")
            if isinstance(result, ExtractionOk):
                return result
            logger.info(f"Extraction attempt {attempt + 1} failed: {result.reason}")
        return result
