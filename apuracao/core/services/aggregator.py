"""
Aggregator — totais da apuração em uma única passada.

Contribuição por regra: o imposto final de cada item é atribuído
integralmente a cada regra aplicada nele (atribuição igual, não
proporcional). A soma de by_rule pode, portanto, exceder tax_amount.
"""

from collections import defaultdict
from typing import Iterable

from apuracao.core.entities.apuracao_run import Totals
from apuracao.core.entities.line_item import LineItem


def aggregate(items: Iterable[LineItem]) -> Totals:
    """Soma os campos calculados dos itens."""
    operation_value = tax_base = tax_amount = 0.0
    substitution_base = substitution_amount = 0.0
    differential_amount = presumed_credit = 0.0
    by_rule: dict[str, float] = defaultdict(float)

    for item in items:
        operation_value += item.operation_value
        tax_base += item.tax_base
        tax_amount += item.tax_amount
        substitution_base += item.substitution_base
        substitution_amount += item.substitution_amount
        differential_amount += item.differential_amount
        presumed_credit += item.presumed_credit
        for rule_id in item.applied_rule_ids:
            by_rule[rule_id] += item.tax_amount

    return Totals(
        operation_value=operation_value,
        tax_base=tax_base,
        tax_amount=tax_amount,
        substitution_base=substitution_base,
        substitution_amount=substitution_amount,
        differential_amount=differential_amount,
        presumed_credit=presumed_credit,
        balance=tax_amount - presumed_credit,
        by_rule=dict(by_rule),
    )


def merge_totals(parts: Iterable[Totals]) -> Totals:
    """Consolida totais de várias apurações (resumo do lote)."""
    by_rule: dict[str, float] = defaultdict(float)
    sums = {name: 0.0 for name in (
        "operation_value", "tax_base", "tax_amount", "substitution_base",
        "substitution_amount", "differential_amount", "presumed_credit", "balance",
    )}
    for totals in parts:
        for name in sums:
            sums[name] += getattr(totals, name)
        for rule_id, value in totals.by_rule.items():
            by_rule[rule_id] += value
    return Totals(**sums, by_rule=dict(by_rule))
