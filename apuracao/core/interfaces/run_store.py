"""
Contract: Run Store

Persistência append-only das apurações concluídas.
"""

from abc import ABC, abstractmethod

from apuracao.core.entities.apuracao_run import ApuracaoRun


class IRunStore(ABC):
    """Port: Run Store"""

    @abstractmethod
    def save(self, run: ApuracaoRun) -> None:
        """Grava a apuração. Uma apuração final já gravada não é sobrescrita."""
        ...

    @abstractmethod
    def get(self, run_id: str) -> dict | None:
        """Apuração serializada (ApuracaoRun.to_dict) ou None."""
        ...

    @abstractmethod
    def list_runs(self, company_id: str, limit: int = 50) -> list[dict]:
        ...
