"""
Domain errors.

Apenas a admissão manual de regras propaga exceções ao chamador;
extração, apuração e lote convertem falhas em resultados estruturados.
"""


class ApuracaoError(Exception):
    """Base de todos os erros do motor de apuração."""


class ExtractionFailure(ApuracaoError):
    """Serviço de IA indisponível ou resposta não interpretável."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationRejection(ApuracaoError):
    """Regra candidata reprovada (estrutura, consistência ou confiança)."""

    def __init__(self, rule_name: str, reason: str):
        super().__init__(f"{rule_name}: {reason}")
        self.rule_name = rule_name
        self.reason = reason


class ItemProcessingFailure(ApuracaoError):
    """Item com código de classificação ausente ou malformado."""

    def __init__(self, document_ref: str, reason: str):
        super().__init__(f"{document_ref}: {reason}")
        self.document_ref = document_ref
        self.reason = reason


class RunFailure(ApuracaoError):
    """A apuração não pôde ser concluída (ex.: fonte de itens inacessível)."""
