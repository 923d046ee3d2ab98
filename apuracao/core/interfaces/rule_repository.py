"""
Contract: Rule Repository

Mantém o conjunto ativo e versionado de regras por empresa.
Leitura frequente; escrita apenas por admissão (manual ou extração).
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date

from apuracao.core.entities.rule import Rule


class IRuleRepository(ABC):
    """
    Port: Rule Repository

    Regras nunca são apagadas: são desativadas quando expiram
    ou quando uma substituta é admitida.
    """

    @abstractmethod
    def admit(self, company_id: str, rule: Rule) -> Rule:
        """
        Admite uma regra para a empresa (desativando a substituída, se houver).

        Raises:
            ValidationRejection: se a regra for estruturalmente inválida.
        """
        ...

    @abstractmethod
    def snapshot(self, company_id: str, on_date: date | None = None) -> tuple[Rule, ...]:
        """Cópia imutável das regras ativas e vigentes, ordenadas por prioridade."""
        ...

    @abstractmethod
    def list_rules(self, company_id: str, include_inactive: bool = False) -> list[Rule]:
        ...

    @abstractmethod
    def get(self, company_id: str, rule_id: str) -> Rule | None:
        ...

    @abstractmethod
    def deactivate(self, company_id: str, rule_id: str) -> bool:
        ...

    @abstractmethod
    def deactivate_expired(self, company_id: str, today: date) -> int:
        """Desativa regras com vigência encerrada. Retorna quantas."""
        ...

    @abstractmethod
    def writer_lock(self, company_id: str) -> AbstractContextManager:
        """Lock de escrita único por empresa (serializa admissões)."""
        ...
