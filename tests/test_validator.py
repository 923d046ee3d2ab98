import pytest

from apuracao.core.entities.rule import (
    CalculationKind,
    ConditionField,
    ConditionOperator,
    LogicalJoin,
    RuleKind,
    RuleProvenance,
)
from apuracao.core.errors import ValidationRejection
from apuracao.core.rules.validator import normalize_token


def candidate(**overrides):
    data = {
        "name": "Máquinas agrícolas",
        "kind": "base_reduction",
        "conditions": [{"field": "classification_code", "operator": "starts_with", "value": "8432"}],
        "calculations": [{"kind": "tax_base", "formula": "halveBase"}],
        "priority": 5,
        "confidence": 90,
    }
    data.update(overrides)
    return data


def test_candidato_valido(validator):
    rule = validator.validate_candidate(candidate(), company_id="acme")

    assert rule.id.startswith("rule_")
    assert rule.kind == RuleKind.BASE_REDUCTION
    assert rule.provenance == RuleProvenance.AUTOMATIC_EXTRACTION
    assert rule.company_id == "acme"
    assert rule.priority == 5
    assert rule.conditions[0].field == ConditionField.CLASSIFICATION_CODE


def test_vocabulario_em_portugues(validator):
    raw = {
        "nome": "Crédito presumido laticínios",
        "tipo": "credito_outorgado",
        "condicoes": [
            {"campo": "ncm", "operador": "igual", "valor": 4012010},
            {"campo": "cst", "operador": "igual", "valor": "00", "logica": "OR"},
        ],
        "calculos": [{"tipo": "credito", "formula": "presumedCredit", "parametros": [3]}],
        "prioridade": 3,
        "confianca": 85,
    }
    rule = validator.validate_candidate(raw)

    assert rule.kind == RuleKind.PRESUMED_CREDIT
    assert rule.conditions[0].operator == ConditionOperator.EQUALS
    assert rule.conditions[0].value == "4012010"
    assert rule.conditions[1].join == LogicalJoin.OR
    assert rule.calculations[0].kind == CalculationKind.CREDIT
    assert rule.calculations[0].parameters == ("3",)


def test_confianca_abaixo_do_limiar(validator):
    with pytest.raises(ValidationRejection) as exc:
        validator.validate_candidate(candidate(confidence=40))
    assert "threshold" in exc.value.reason


def test_candidato_extraido_sem_confianca_e_rejeitado(validator):
    raw = candidate()
    del raw["confidence"]
    with pytest.raises(ValidationRejection):
        validator.validate_candidate(raw)


def test_regra_manual_nao_passa_pelo_limiar(validator):
    raw = candidate()
    del raw["confidence"]
    rule = validator.validate_candidate(raw, provenance=RuleProvenance.MANUAL)
    assert rule.confidence == 100.0
    assert rule.provenance == RuleProvenance.MANUAL


@pytest.mark.parametrize("overrides,reason", [
    ({"name": None}, "missing"),
    ({"calculations": []}, "missing"),
    ({"kind": "imaginary"}, "unknown rule kind"),
    ({"calculations": [{"kind": "tax_base", "formula": "nope"}]}, "unknown formula"),
    ({"calculations": [{"kind": "tax_base", "formula": "reduceBase"}]}, "needs 1 parameters"),
    ({"calculations": [{"kind": "tax_base", "formula": "reduceBase", "parameters": ["150"]}]}, "outside [0, 100]"),
    ({"calculations": [{"kind": "tax_base", "formula": "reduceBase", "parameters": ["metade"]}]}, "unresolvable"),
    ({"conditions": [{"field": "operation_value", "operator": "between", "value": [1]}]}, "two bounds"),
    ({"conditions": [{"field": "operation_value", "operator": "between", "value": ["a", "b"]}]}, "numeric"),
    ({"conditions": [{"field": "operation_value", "operator": "greater_than", "value": "x"}]}, "numeric"),
    ({"conditions": [{"field": "color", "operator": "equals", "value": "x"}]}, "unknown condition field"),
    ({"valid_from": "2024-06-01", "valid_until": "2024-01-01"}, "window"),
])
def test_rejeicoes(validator, overrides, reason):
    with pytest.raises(ValidationRejection) as exc:
        validator.validate_candidate(candidate(**overrides))
    assert reason in exc.value.reason


def test_candidato_que_nao_e_objeto(validator):
    with pytest.raises(ValidationRejection):
        validator.validate_candidate(["not", "a", "dict"])


def test_normalize_token():
    assert normalize_token("notEquals") == "not_equals"
    assert normalize_token("starts-with") == "starts_with"
    assert normalize_token(" Greater Than ") == "greater_than"
