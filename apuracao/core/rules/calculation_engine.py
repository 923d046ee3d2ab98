"""
Calculation Engine — aplica os passos de cálculo de uma regra.

Dobra (left fold) sobre os passos: cada passo lê o snapshot atual
do item e produz um novo snapshot com um único campo alterado.
Passos posteriores, e regras seguintes, enxergam as alterações.
"""

import logging
from functools import reduce

from apuracao.core.entities.line_item import LineItem
from apuracao.core.entities.rule import CalculationStep, ResultTarget, Rule
from apuracao.core.rules.formulas import FormulaRegistry, default_registry

logger = logging.getLogger(__name__)


NUMERIC_FIELDS: frozenset[str] = frozenset({
    "operation_value",
    "tax_base",
    "rate",
    "tax_amount",
    "substitution_base",
    "substitution_rate",
    "substitution_amount",
    "differential_amount",
    "presumed_credit",
})


def resolve_parameter(item: LineItem, name: str) -> float | None:
    """Literal numérico ou valor atual de um campo numérico do item."""
    text = str(name).strip()
    if text in NUMERIC_FIELDS:
        return float(getattr(item, text))
    try:
        return float(text.replace(",", ".").rstrip("%"))
    except ValueError:
        return None


def derive_substitution(item: LineItem) -> LineItem:
    """Completa a ST depois de definida a alíquota: base (se ausente) e valor."""
    base = item.substitution_base or item.tax_base
    return item.with_values(
        substitution_base=base,
        substitution_amount=base * item.substitution_rate / 100,
    )


class CalculationEngine:
    """Aplica passos de cálculo via FormulaRegistry."""

    def __init__(self, registry: FormulaRegistry | None = None):
        self.registry = registry or default_registry()

    def apply_step(self, item: LineItem, step: CalculationStep) -> LineItem:
        """Aplica um passo. Nunca lança: problemas viram warnings no item."""
        target = step.result_target.value
        formula = self.registry.get(step.formula)

        if formula is None:
            logger.warning(f"Unknown formula '{step.formula}' for {item.document_ref}, using 0")
            return item.with_values(**{target: 0.0}).with_warning(
                f"Unknown formula '{step.formula}': {target} set to 0"
            )

        params = [resolve_parameter(item, name) for name in step.parameters]
        if any(p is None for p in params) or len(params) < formula.arity:
            return item.with_warning(
                f"Formula '{step.formula}' skipped: unresolved parameters {list(step.parameters)}"
            )

        try:
            value = float(formula.fn(item, params))
        except (ArithmeticError, ValueError, IndexError) as e:
            return item.with_warning(f"Formula '{step.formula}' failed: {e}")

        result = item.with_values(**{target: value})
        if step.result_target is ResultTarget.SUBSTITUTION_RATE:
            result = derive_substitution(result)
        return result

    def apply_rule(self, item: LineItem, rule: Rule) -> LineItem:
        """Aplica todos os passos da regra, em ordem, e registra a regra no item."""
        result = reduce(self.apply_step, rule.calculations, item)
        return result.with_applied_rule(rule.id, rule.name)
