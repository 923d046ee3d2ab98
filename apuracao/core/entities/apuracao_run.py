"""
Entity: Apuração Run

Resultado consolidado de uma apuração (empresa + período):
regras aplicadas, itens, totais, confiança e observações.
Imutável depois de COMPLETED/FAILED (trilha de auditoria).
"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum

from apuracao.core.entities.line_item import LineItem
from apuracao.core.entities.rule import Rule


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Totals:
    """Totais da apuração."""
    operation_value: float = 0.0
    tax_base: float = 0.0
    tax_amount: float = 0.0
    substitution_base: float = 0.0
    substitution_amount: float = 0.0
    differential_amount: float = 0.0
    presumed_credit: float = 0.0
    balance: float = 0.0                # saldo apurado = imposto - crédito presumido
    by_rule: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ApuracaoRun:
    """Resultado de uma apuração."""
    id: str
    company_id: str
    period: str
    status: RunStatus = RunStatus.PENDING
    rules_applied: tuple[Rule, ...] = ()
    items: tuple[LineItem, ...] = ()
    totals: Totals = field(default_factory=Totals)
    confidence: float = 0.0
    observations: tuple[str, ...] = ()
    latency_ms: float = 0.0
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_final(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)

    def to_dict(self) -> dict:
        return to_jsonable(asdict(self))


def to_jsonable(value):
    """Converte recursivamente enums/datas/tuplas para tipos JSON."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
