"""
Condition Evaluator — avaliação pura de condições sobre itens.

Cada operador é uma função pura (item, condição) → bool.
Entradas inválidas (não numéricas, BETWEEN sem dois limites)
avaliam como False, nunca como erro.
"""

from typing import Callable

from apuracao.core.entities.line_item import LineItem
from apuracao.core.entities.rule import (
    Condition,
    ConditionField,
    ConditionOperator,
    LogicalJoin,
    Rule,
)


FIELD_ACCESSORS: dict[ConditionField, Callable[[LineItem], object]] = {
    ConditionField.CLASSIFICATION_CODE: lambda item: item.classification_code,
    ConditionField.OPERATION_CODE: lambda item: item.operation_code,
    ConditionField.TAX_SITUATION_CODE: lambda item: item.tax_situation_code,
    ConditionField.ORIGIN_UF: lambda item: item.origin_uf,
    ConditionField.DESTINATION_UF: lambda item: item.destination_uf,
    ConditionField.CLIENT_TYPE: lambda item: item.client_type,
    ConditionField.OPERATION_VALUE: lambda item: item.operation_value,
    ConditionField.TAX_BASE: lambda item: item.tax_base,
    ConditionField.RATE: lambda item: item.rate,
}


def _to_float(value) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _greater_than(actual, expected) -> bool:
    a, b = _to_float(actual), _to_float(expected)
    return a is not None and b is not None and a > b


def _less_than(actual, expected) -> bool:
    a, b = _to_float(actual), _to_float(expected)
    return a is not None and b is not None and a < b


def _between(actual, expected) -> bool:
    if not isinstance(expected, (list, tuple)) or len(expected) != 2:
        return False
    a = _to_float(actual)
    low, high = _to_float(expected[0]), _to_float(expected[1])
    if a is None or low is None or high is None:
        return False
    return low <= a <= high


OPERATORS: dict[ConditionOperator, Callable[[object, object], bool]] = {
    ConditionOperator.EQUALS: lambda actual, expected: actual == expected,
    ConditionOperator.NOT_EQUALS: lambda actual, expected: actual != expected,
    ConditionOperator.CONTAINS: lambda actual, expected: str(expected) in str(actual),
    ConditionOperator.STARTS_WITH: lambda actual, expected: str(actual).startswith(str(expected)),
    ConditionOperator.GREATER_THAN: _greater_than,
    ConditionOperator.LESS_THAN: _less_than,
    ConditionOperator.BETWEEN: _between,
}


def evaluate_condition(item: LineItem, condition: Condition) -> bool:
    """Avalia uma condição contra um item."""
    accessor = FIELD_ACCESSORS.get(condition.field)
    operator = OPERATORS.get(condition.operator)
    if accessor is None or operator is None:
        return False
    return operator(accessor(item), condition.value)


def condition_groups(conditions: tuple[Condition, ...]) -> list[list[Condition]]:
    """
    Divide as condições em grupos AND.

    Uma condição com join=OR abre um novo grupo; o join da
    primeira condição é ignorado.
    """
    groups: list[list[Condition]] = [[]]
    for condition in conditions:
        if condition.join == LogicalJoin.OR and groups[-1]:
            groups.append([])
        groups[-1].append(condition)
    return groups


def matches(item: LineItem, rule: Rule) -> bool:
    """
    True se algum grupo AND da regra for integralmente satisfeito.

    Regras sem condições casam com qualquer item.
    """
    return any(
        all(evaluate_condition(item, c) for c in group)
        for group in condition_groups(rule.conditions)
    )
