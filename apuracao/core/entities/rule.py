"""
Entity: Rule

Regra fiscal declarativa (condições + cálculos) aplicada sobre
itens normalizados durante a apuração.
Modelo puro — sem dependência de framework ou banco.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class RuleKind(str, Enum):
    BASE_REDUCTION = "base_reduction"
    PRESUMED_CREDIT = "presumed_credit"
    SURCHARGE_BENEFIT = "surcharge_benefit"
    INTERSTATE_DIFFERENTIAL = "interstate_differential"
    FIXED_ASSET_CREDIT = "fixed_asset_credit"
    SUBSTITUTION_TAX = "substitution_tax"
    EXEMPTION = "exemption"


class RuleProvenance(str, Enum):
    MANUAL = "manual"
    AUTOMATIC_EXTRACTION = "automatic_extraction"


class ConditionField(str, Enum):
    CLASSIFICATION_CODE = "classification_code"    # NCM
    OPERATION_CODE = "operation_code"              # CFOP
    TAX_SITUATION_CODE = "tax_situation_code"      # CST
    ORIGIN_UF = "origin_uf"
    DESTINATION_UF = "destination_uf"
    CLIENT_TYPE = "client_type"
    OPERATION_VALUE = "operation_value"
    TAX_BASE = "tax_base"
    RATE = "rate"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class LogicalJoin(str, Enum):
    AND = "AND"
    OR = "OR"


class CalculationKind(str, Enum):
    TAX_BASE = "tax_base"
    RATE = "rate"
    CREDIT = "credit"
    SUBSTITUTION_TAX = "substitution_tax"
    DIFFERENTIAL = "differential"


class ResultTarget(str, Enum):
    """Campos do item que um passo de cálculo pode escrever."""
    TAX_BASE = "tax_base"
    RATE = "rate"
    TAX_AMOUNT = "tax_amount"
    SUBSTITUTION_BASE = "substitution_base"
    SUBSTITUTION_RATE = "substitution_rate"
    SUBSTITUTION_AMOUNT = "substitution_amount"
    DIFFERENTIAL_AMOUNT = "differential_amount"
    PRESUMED_CREDIT = "presumed_credit"


DEFAULT_TARGETS: dict[CalculationKind, ResultTarget] = {
    CalculationKind.TAX_BASE: ResultTarget.TAX_BASE,
    CalculationKind.RATE: ResultTarget.RATE,
    CalculationKind.CREDIT: ResultTarget.PRESUMED_CREDIT,
    CalculationKind.SUBSTITUTION_TAX: ResultTarget.SUBSTITUTION_RATE,
    CalculationKind.DIFFERENTIAL: ResultTarget.DIFFERENTIAL_AMOUNT,
}


@dataclass(frozen=True)
class Condition:
    """Predicado sobre um campo do item."""
    field: ConditionField
    operator: ConditionOperator
    value: object                       # escalar ou [min, max] para BETWEEN
    join: LogicalJoin = LogicalJoin.AND


@dataclass(frozen=True)
class CalculationStep:
    """Um passo de cálculo: fórmula do registro → campo alvo."""
    kind: CalculationKind
    formula: str                        # chave no FormulaRegistry
    parameters: tuple[str, ...] = ()    # literais numéricos ou nomes de campos
    target: ResultTarget | None = None

    @property
    def result_target(self) -> ResultTarget:
        return self.target or DEFAULT_TARGETS[self.kind]


@dataclass(frozen=True)
class Rule:
    """Entidade de domínio: Regra fiscal."""
    id: str
    name: str
    kind: RuleKind
    calculations: tuple[CalculationStep, ...]
    conditions: tuple[Condition, ...] = ()
    description: str = ""
    priority: int = 0                   # maior = avaliada primeiro
    active: bool = True
    provenance: RuleProvenance = RuleProvenance.MANUAL
    confidence: float = 100.0           # 0 a 100
    company_id: str | None = None
    valid_from: date | None = None
    valid_until: date | None = None
    replaces: str | None = None         # id da regra substituída
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def is_valid_on(self, day: date) -> bool:
        if self.valid_from and day < self.valid_from:
            return False
        if self.valid_until and day > self.valid_until:
            return False
        return True

    def is_eligible(self, day: date, confidence_threshold: float) -> bool:
        """Ativa, vigente e (se extraída por IA) acima do limiar de confiança."""
        if not self.active or not self.is_valid_on(day):
            return False
        if self.provenance == RuleProvenance.AUTOMATIC_EXTRACTION:
            return self.confidence >= confidence_threshold
        return True
