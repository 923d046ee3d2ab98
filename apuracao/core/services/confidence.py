"""
Confidence Scorer — pontuação heurística e determinística da apuração.

Parte de 100 e aplica a tabela abaixo; resultado limitado a [0, 100].

    Penalidades:
        EMPTY_PENALTY          -50  nenhum item apurado
        ZERO_TAX_PENALTY       -20  mais de 50% dos itens com imposto zero
        SUBSTITUTION_PENALTY   -15  ST total maior que o imposto próprio total
        DEGRADED_PENALTY       -10  extração de regras falhou nesta apuração
    Bônus:
        COVERAGE_BONUS         +10  mais de 50% dos itens com ao menos uma regra
"""

from dataclasses import dataclass
from typing import Sequence

from apuracao.core.entities.apuracao_run import Totals
from apuracao.core.entities.line_item import LineItem


BASELINE = 100.0
EMPTY_PENALTY = 50.0
ZERO_TAX_PENALTY = 20.0
ZERO_TAX_THRESHOLD = 0.5
SUBSTITUTION_PENALTY = 15.0
DEGRADED_PENALTY = 10.0
COVERAGE_BONUS = 10.0
COVERAGE_THRESHOLD = 0.5


@dataclass
class ConfidenceBreakdown:
    """Pontuação + razões (para as observações da apuração)."""
    score: float
    reasons: list[str]


class ConfidenceScorer:
    """Função pura (itens, totais) → pontuação. Sem I/O, sem aleatoriedade."""

    def score(self, items: Sequence[LineItem], totals: Totals, extraction_degraded: bool = False) -> float:
        return self.breakdown(items, totals, extraction_degraded).score

    def breakdown(
        self,
        items: Sequence[LineItem],
        totals: Totals,
        extraction_degraded: bool = False,
    ) -> ConfidenceBreakdown:
        score = BASELINE
        reasons: list[str] = []

        if not items:
            score -= EMPTY_PENALTY
            reasons.append(f"-{EMPTY_PENALTY:g}: no items")
        else:
            zero_tax = sum(1 for i in items if i.tax_amount == 0) / len(items)
            if zero_tax > ZERO_TAX_THRESHOLD:
                score -= ZERO_TAX_PENALTY
                reasons.append(f"-{ZERO_TAX_PENALTY:g}: {zero_tax:.0%} of items with zero tax")

            covered = sum(1 for i in items if i.applied_rule_ids) / len(items)
            if covered > COVERAGE_THRESHOLD:
                score += COVERAGE_BONUS
                reasons.append(f"+{COVERAGE_BONUS:g}: {covered:.0%} of items matched a rule")

        if totals.substitution_amount > totals.tax_amount:
            score -= SUBSTITUTION_PENALTY
            reasons.append(f"-{SUBSTITUTION_PENALTY:g}: substitution tax exceeds principal tax")

        if extraction_degraded:
            score -= DEGRADED_PENALTY
            reasons.append(f"-{DEGRADED_PENALTY:g}: rule extraction degraded")

        return ConfidenceBreakdown(score=max(0.0, min(100.0, score)), reasons=reasons)
