"""
Contract: Rule Extractor

Transforma texto bruto (planilha/relatório de regras) em descritores
de regras candidatas. Qualquer backend (Gemini, OpenAI, parser local)
deve implementar este contrato.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from apuracao.core.errors import ExtractionFailure


@dataclass
class ExtractionOk:
    """Extração bem-sucedida: lista de descritores candidatos (dicts crus)."""
    candidates: list[dict] = field(default_factory=list)
    model: str = ""
    latency_ms: float = 0.0


ExtractionResult = ExtractionOk | ExtractionFailure


class IRuleExtractor(ABC):
    """
    Port: Rule Extractor

    Nunca lança exceção: falhas de rede ou de parsing voltam
    como ExtractionFailure.
    """

    @abstractmethod
    def extract(self, source_text: str) -> ExtractionResult:
        """
        Extrai regras candidatas de um texto.

        Args:
            source_text: Conteúdo bruto com a descrição das regras.

        Returns:
            ExtractionOk com os candidatos ou ExtractionFailure com o motivo.
        """
        ...
