"""
Rule Validator — admissão de regras candidatas.

Converte descritores crus (vindos da IA ou de uma API) em Rule
tipada e aplica três verificações:
    1. Confiança — acima do limiar configurado
    2. Estrutura — nome, tipo e ao menos um cálculo
    3. Consistência — fórmulas conhecidas, parâmetros resolvíveis,
       percentuais em [0, 100], BETWEEN com dois limites

Aceita o vocabulário em inglês e o vocabulário em português do
prompt de extração (nome, tipo, condicoes, calculos, igual, entre...).
"""

import re
import uuid
from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from apuracao.core.entities.rule import (
    CalculationKind,
    CalculationStep,
    Condition,
    ConditionField,
    ConditionOperator,
    LogicalJoin,
    ResultTarget,
    Rule,
    RuleKind,
    RuleProvenance,
)
from apuracao.core.errors import ValidationRejection
from apuracao.core.rules.calculation_engine import NUMERIC_FIELDS
from apuracao.core.rules.formulas import FormulaRegistry


# ─── Vocabulário ────────────────────────────────────────

RULE_KIND_ALIASES = {
    "base_reduzida": RuleKind.BASE_REDUCTION,
    "credito_outorgado": RuleKind.PRESUMED_CREDIT,
    "credito_presumido": RuleKind.PRESUMED_CREDIT,
    "protege": RuleKind.SURCHARGE_BENEFIT,
    "difal": RuleKind.INTERSTATE_DIFFERENTIAL,
    "ciap": RuleKind.FIXED_ASSET_CREDIT,
    "st": RuleKind.SUBSTITUTION_TAX,
    "isencao": RuleKind.EXEMPTION,
}

FIELD_ALIASES = {
    "ncm": ConditionField.CLASSIFICATION_CODE,
    "product_classification_code": ConditionField.CLASSIFICATION_CODE,
    "cfop": ConditionField.OPERATION_CODE,
    "cst": ConditionField.TAX_SITUATION_CODE,
    "uf_origem": ConditionField.ORIGIN_UF,
    "uf_destino": ConditionField.DESTINATION_UF,
    "tipo_cliente": ConditionField.CLIENT_TYPE,
    "valor": ConditionField.OPERATION_VALUE,
    "base": ConditionField.TAX_BASE,
    "aliquota": ConditionField.RATE,
}

OPERATOR_ALIASES = {
    "igual": ConditionOperator.EQUALS,
    "diferente": ConditionOperator.NOT_EQUALS,
    "contem": ConditionOperator.CONTAINS,
    "inicia_com": ConditionOperator.STARTS_WITH,
    "maior": ConditionOperator.GREATER_THAN,
    "menor": ConditionOperator.LESS_THAN,
    "entre": ConditionOperator.BETWEEN,
}

CALCULATION_KIND_ALIASES = {
    "base_calculo": CalculationKind.TAX_BASE,
    "aliquota": CalculationKind.RATE,
    "credito": CalculationKind.CREDIT,
    "st": CalculationKind.SUBSTITUTION_TAX,
    "difal": CalculationKind.DIFFERENTIAL,
}

PARAMETER_ALIASES = {
    "valor": "operation_value",
    "base": "tax_base",
    "aliquota": "rate",
}


def normalize_token(value: Any) -> str:
    """'notEquals' / 'not-equals' / 'Not Equals' → 'not_equals'."""
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(value).strip())
    return re.sub(r"[\s\-]+", "_", text).lower()


def _lookup(enum_cls, aliases: dict, value: Any):
    token = normalize_token(value)
    if token in aliases:
        return aliases[token]
    try:
        return enum_cls(token)
    except ValueError:
        return None


def _normalize_parameter(value: Any) -> str:
    text = str(value).strip()
    token = normalize_token(text)
    if token in NUMERIC_FIELDS:
        return token
    return PARAMETER_ALIASES.get(token, text)


# ─── Descritores crus ───────────────────────────────────

class CandidateCondition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    field: str = Field(validation_alias=AliasChoices("field", "campo"))
    operator: str = Field(validation_alias=AliasChoices("operator", "operador", "op"))
    value: Any = Field(default=None, validation_alias=AliasChoices("value", "valor"))
    join: str = Field(default="AND", validation_alias=AliasChoices("join", "logic", "logica"))


class CandidateCalculation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: str = Field(validation_alias=AliasChoices("kind", "tipo", "type"))
    formula: str = Field(validation_alias=AliasChoices("formula", "formula_id", "formulaKey"))
    parameters: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("parameters", "parametros", "params")
    )
    target: str | None = Field(
        default=None, validation_alias=AliasChoices("target", "result_target", "resultTarget", "resultado")
    )

    @field_validator("parameters", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            value = [value]
        return [str(v) for v in value]


class CandidateRule(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, validation_alias=AliasChoices("name", "nome"))
    description: str = Field(default="", validation_alias=AliasChoices("description", "descricao"))
    kind: str | None = Field(default=None, validation_alias=AliasChoices("kind", "tipo", "type"))
    conditions: list[CandidateCondition] = Field(
        default_factory=list, validation_alias=AliasChoices("conditions", "condicoes")
    )
    calculations: list[CandidateCalculation] = Field(
        default_factory=list, validation_alias=AliasChoices("calculations", "calculos")
    )
    priority: int = Field(default=0, validation_alias=AliasChoices("priority", "prioridade"))
    confidence: float | None = Field(default=None, validation_alias=AliasChoices("confidence", "confianca"))
    valid_from: date | None = Field(default=None, validation_alias=AliasChoices("valid_from", "validFrom"))
    valid_until: date | None = Field(default=None, validation_alias=AliasChoices("valid_until", "validUntil"))
    replaces: str | None = None


# ─── Validador ──────────────────────────────────────────

class RuleValidator:
    """Valida candidatos e regras manuais contra o registro de fórmulas."""

    def __init__(self, registry: FormulaRegistry, confidence_threshold: float = 70.0):
        self.registry = registry
        self.confidence_threshold = confidence_threshold

    def validate_candidate(
        self,
        raw: Any,
        company_id: str | None = None,
        provenance: RuleProvenance = RuleProvenance.AUTOMATIC_EXTRACTION,
    ) -> Rule:
        """
        Converte um descritor cru em Rule admitível.

        O limiar de confiança só se aplica a regras extraídas; regras
        manuais sem confiança informada valem 100.

        Raises:
            ValidationRejection: com o motivo da reprovação.
        """
        if not isinstance(raw, dict):
            raise ValidationRejection("<unnamed>", "candidate is not an object")
        label = str(raw.get("name") or raw.get("nome") or "<unnamed>")

        try:
            candidate = CandidateRule.model_validate(raw)
        except ValidationError as e:
            raise ValidationRejection(label, f"malformed candidate ({e.error_count()} errors)") from e

        extracted = provenance == RuleProvenance.AUTOMATIC_EXTRACTION
        confidence = candidate.confidence
        if confidence is None:
            confidence = 0.0 if extracted else 100.0
        if extracted and confidence < self.confidence_threshold:
            raise ValidationRejection(
                label, f"confidence {confidence} below threshold {self.confidence_threshold}"
            )

        if not candidate.name or not candidate.kind or not candidate.calculations:
            raise ValidationRejection(label, "missing name, kind or calculations")

        kind = _lookup(RuleKind, RULE_KIND_ALIASES, candidate.kind)
        if kind is None:
            raise ValidationRejection(label, f"unknown rule kind '{candidate.kind}'")

        conditions = tuple(self._build_condition(label, c) for c in candidate.conditions)
        calculations = tuple(self._build_calculation(label, c) for c in candidate.calculations)

        now = datetime.utcnow()
        rule = Rule(
            id=f"rule_{uuid.uuid4().hex[:12]}",
            name=candidate.name,
            description=candidate.description,
            kind=kind,
            conditions=conditions,
            calculations=calculations,
            priority=candidate.priority,
            active=True,
            provenance=provenance,
            confidence=confidence,
            company_id=company_id,
            valid_from=candidate.valid_from,
            valid_until=candidate.valid_until,
            replaces=candidate.replaces,
            created_at=now,
            updated_at=now,
        )
        self.check_rule(rule)
        return rule

    def check_rule(self, rule: Rule) -> None:
        """
        Consistência de uma regra já tipada (também usada na admissão manual).

        Raises:
            ValidationRejection
        """
        if not rule.name or not rule.calculations:
            raise ValidationRejection(rule.name or "<unnamed>", "missing name or calculations")
        if not 0 <= rule.confidence <= 100:
            raise ValidationRejection(rule.name, f"confidence {rule.confidence} outside [0, 100]")
        if rule.valid_from and rule.valid_until and rule.valid_until < rule.valid_from:
            raise ValidationRejection(rule.name, "validity window ends before it starts")

        for condition in rule.conditions:
            self._check_condition(rule.name, condition)
        for step in rule.calculations:
            self._check_step(rule.name, step)

    # ─── Construção ─────────────────────────────────────

    def _build_condition(self, label: str, raw: CandidateCondition) -> Condition:
        field = _lookup(ConditionField, FIELD_ALIASES, raw.field)
        if field is None:
            raise ValidationRejection(label, f"unknown condition field '{raw.field}'")
        operator = _lookup(ConditionOperator, OPERATOR_ALIASES, raw.operator)
        if operator is None:
            raise ValidationRejection(label, f"unknown operator '{raw.operator}'")
        join = LogicalJoin.OR if str(raw.join).strip().upper() == "OR" else LogicalJoin.AND
        value = raw.value
        if isinstance(value, list):
            value = tuple(value)
        elif field.value not in NUMERIC_FIELDS and value is not None:
            value = str(value).strip()      # códigos são strings no item
        return Condition(field=field, operator=operator, value=value, join=join)

    def _build_calculation(self, label: str, raw: CandidateCalculation) -> CalculationStep:
        kind = _lookup(CalculationKind, CALCULATION_KIND_ALIASES, raw.kind)
        if kind is None:
            raise ValidationRejection(label, f"unknown calculation kind '{raw.kind}'")
        # "resultado" no prompt original é percentual|valor|base: não é um campo alvo
        target = _lookup(ResultTarget, {}, raw.target) if raw.target else None
        return CalculationStep(
            kind=kind,
            formula=raw.formula.strip(),
            parameters=tuple(_normalize_parameter(p) for p in raw.parameters),
            target=target,
        )

    # ─── Consistência ───────────────────────────────────

    def _check_condition(self, label: str, condition: Condition) -> None:
        if condition.operator == ConditionOperator.BETWEEN:
            value = condition.value
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise ValidationRejection(label, "BETWEEN requires exactly two bounds")
            if any(_as_number(v) is None for v in value):
                raise ValidationRejection(label, "BETWEEN bounds must be numeric")
        elif condition.operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
            if _as_number(condition.value) is None:
                raise ValidationRejection(label, f"{condition.operator.value} requires a numeric value")

    def _check_step(self, label: str, step: CalculationStep) -> None:
        formula = self.registry.get(step.formula)
        if formula is None:
            raise ValidationRejection(label, f"unknown formula '{step.formula}'")
        if len(step.parameters) < formula.arity:
            raise ValidationRejection(
                label, f"formula '{step.formula}' needs {formula.arity} parameters, got {len(step.parameters)}"
            )
        for name in step.parameters:
            if name not in NUMERIC_FIELDS and _as_number(name) is None:
                raise ValidationRejection(label, f"unresolvable parameter '{name}'")
        for index in formula.percent_params:
            number = _as_number(step.parameters[index])
            if number is not None and not 0 <= number <= 100:
                raise ValidationRejection(label, f"percentage {number} outside [0, 100] in '{step.formula}'")


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(str(value).replace(",", ".").rstrip("%"))
    except ValueError:
        return None
