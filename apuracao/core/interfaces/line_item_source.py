"""
Contract: Line Item Source

Fornece os itens fiscais já normalizados (NF-e, SPED, etc.).
Os parsers de documentos ficam fora deste motor.
"""

from abc import ABC, abstractmethod

from apuracao.core.entities.line_item import LineItem


class ILineItemSource(ABC):
    """
    Port: Line Item Source

    Pode lançar exceção quando a fonte estiver inacessível;
    o orquestrador converte isso em uma apuração FAILED.
    """

    @abstractmethod
    def fetch_period_items(self, company_id: str, period: str) -> list[LineItem]:
        """
        Itens de todos os documentos da empresa no período.

        Args:
            company_id: Identificador da empresa.
            period: Período no formato "YYYY-MM".
        """
        ...

    @abstractmethod
    def fetch_document_items(self, document_id: str) -> list[LineItem]:
        """Itens de um único documento."""
        ...

    def document_version(self, document_id: str) -> str:
        """
        Identifica o conteúdo bruto do documento (ex.: hash dos bytes).

        Muda quando o documento muda; não normaliza os itens.
        String vazia quando a fonte não versiona documentos.
        """
        return ""
