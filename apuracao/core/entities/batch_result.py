"""
Entity: Batch Result

Resultado do processamento em lote de vários documentos.
"""

from dataclasses import dataclass, field, asdict

from apuracao.core.entities.apuracao_run import ApuracaoRun, Totals, to_jsonable


@dataclass(frozen=True)
class DocumentResult:
    """Resultado de um documento dentro do lote."""
    document_id: str
    fingerprint: str
    success: bool
    run: ApuracaoRun | None = None
    error: str | None = None
    cached: bool = False
    latency_ms: float = 0.0


@dataclass(frozen=True)
class BatchResult:
    """Resultado consolidado do lote."""
    total: int
    success_count: int
    error_count: int
    results: tuple[DocumentResult, ...] = ()
    summary: Totals = field(default_factory=Totals)
    latency_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.error_count == 0

    def to_dict(self) -> dict:
        data = to_jsonable(asdict(self))
        data["success"] = self.success
        return data
