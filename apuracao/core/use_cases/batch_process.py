"""
Use Case: Batch Process

Vários documentos → uma apuração por documento, com concorrência
limitada e cache de idempotência. O fingerprint cobre a versão do
documento na fonte e o conjunto de regras vigente da empresa, então
um acerto no cache não normaliza o documento de novo.
Falha de um documento fica no resultado dele e não aborta o lote.
"""

import hashlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from apuracao.core.entities.apuracao_run import RunStatus
from apuracao.core.entities.batch_result import BatchResult, DocumentResult
from apuracao.core.interfaces.cache import ICache
from apuracao.core.interfaces.line_item_source import ILineItemSource
from apuracao.core.services.aggregator import merge_totals
from apuracao.core.use_cases.run_apuracao import ApuracaoOrchestrator

logger = logging.getLogger(__name__)


def document_fingerprint(
    company_id: str,
    period: str,
    document_id: str,
    document_version: str = "",
    rules_version: str = "",
) -> str:
    """Chave de idempotência: documento, versão do conteúdo e conjunto de regras vigente."""
    raw = f"{company_id}|{period}|{document_id}|{document_version}|{rules_version}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class BatchCoordinator:
    """
    Use Case: processa um lote de documentos.

    Sem retries por padrão; nenhuma garantia de ordem de execução
    entre documentos (os resultados voltam na ordem de entrada).
    """

    def __init__(
        self,
        orchestrator: ApuracaoOrchestrator,
        item_source: ILineItemSource,
        cache: ICache | None = None,
        concurrency: int = 4,
        cache_ttl_seconds: int = 3600,
    ):
        self._orchestrator = orchestrator
        self._items = item_source
        self._cache = cache
        self._concurrency = max(1, concurrency)
        self._cache_ttl = cache_ttl_seconds

    def process(self, company_id: str, period: str, document_ids: list[str]) -> BatchResult:
        t_start = time.perf_counter()
        logger.info(f"Processing batch of {len(document_ids)} documents [{company_id} {period}]")

        workers = max(1, min(self._concurrency, len(document_ids)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="apuracao-batch") as pool:
            futures = [pool.submit(self._process_one, company_id, period, doc_id) for doc_id in document_ids]
            results = tuple(f.result() for f in futures)

        success_count = sum(1 for r in results if r.success)
        batch = BatchResult(
            total=len(results),
            success_count=success_count,
            error_count=len(results) - success_count,
            results=results,
            summary=merge_totals(r.run.totals for r in results if r.success and r.run is not None),
            latency_ms=round((time.perf_counter() - t_start) * 1000, 2),
        )
        logger.info(
            f"Batch processed: {batch.success_count}/{batch.total} ok, "
            f"{batch.error_count} errors ({batch.latency_ms}ms)"
        )
        return batch

    def _process_one(self, company_id: str, period: str, document_id: str) -> DocumentResult:
        """Nunca lança: erros viram DocumentResult com success=False."""
        t0 = time.perf_counter()
        try:
            fingerprint = document_fingerprint(
                company_id,
                period,
                document_id,
                document_version=self._items.document_version(document_id),
                rules_version=self._orchestrator.rule_set_version(company_id),
            )
        except Exception as e:
            logger.error(f"Document {document_id} unavailable: {e}")
            return self._error_result(
                document_id, document_fingerprint(company_id, period, document_id), f"Document unavailable: {e}", t0
            )

        key = f"document:{fingerprint}"
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug(f"Document {document_id} served from cache")
                return replace(cached, cached=True)

        try:
            items = self._items.fetch_document_items(document_id)
        except Exception as e:
            logger.error(f"Normalization failed for document {document_id}: {e}")
            return self._error_result(document_id, fingerprint, f"Normalization failed: {e}", t0)

        run = self._orchestrator.execute(company_id, period, items=items)
        latency = round((time.perf_counter() - t0) * 1000, 2)

        if run.status == RunStatus.FAILED:
            return DocumentResult(
                document_id=document_id,
                fingerprint=fingerprint,
                success=False,
                run=run,
                error=run.observations[0] if run.observations else "Run failed",
                latency_ms=latency,
            )

        result = DocumentResult(
            document_id=document_id,
            fingerprint=fingerprint,
            success=True,
            run=run,
            latency_ms=latency,
        )
        # falhas não entram no cache
        if self._cache is not None:
            self._cache.set(key, result, self._cache_ttl)
        return result

    @staticmethod
    def _error_result(document_id: str, fingerprint: str, error: str, t0: float) -> DocumentResult:
        return DocumentResult(
            document_id=document_id,
            fingerprint=fingerprint,
            success=False,
            error=error,
            latency_ms=round((time.perf_counter() - t0) * 1000, 2),
        )
