"""
Entity: Line Item

Item fiscal normalizado (um produto/operação de um documento).
Imutável: cada regra/cálculo aplicado produz um novo snapshot.
"""

import datetime as dt
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class LineItem:
    """Snapshot de um item durante a apuração."""
    document_ref: str
    date: dt.date | None = None
    product: str = ""

    # Códigos de classificação
    classification_code: str = ""       # NCM
    operation_code: str = ""            # CFOP
    tax_situation_code: str = ""        # CST
    origin_uf: str = ""
    destination_uf: str = ""
    client_type: str = ""

    # Valores
    operation_value: float = 0.0
    tax_base: float = 0.0
    rate: float = 0.0
    tax_amount: float = 0.0
    substitution_base: float = 0.0
    substitution_rate: float = 0.0
    substitution_amount: float = 0.0
    differential_amount: float = 0.0
    presumed_credit: float = 0.0

    # Rastreabilidade
    applied_rule_ids: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def with_values(self, **changes) -> "LineItem":
        return replace(self, **changes)

    def with_warning(self, warning: str) -> "LineItem":
        return replace(self, warnings=self.warnings + (warning,))

    def with_applied_rule(self, rule_id: str, rule_name: str) -> "LineItem":
        return replace(
            self,
            applied_rule_ids=self.applied_rule_ids + (rule_id,),
            notes=self.notes + (f"Rule applied: {rule_name}",),
        )
