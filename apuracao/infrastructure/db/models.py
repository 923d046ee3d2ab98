"""
Database Models — SQLAlchemy.

Tables:
  - apuracao_runs: completed/failed apuração runs (append-only audit trail)
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, String, Float, Integer, DateTime, JSON
from sqlalchemy.orm import DeclarativeBase

from apuracao.core.entities.apuracao_run import ApuracaoRun


class Base(DeclarativeBase):
    pass


class ApuracaoRunRecord(Base):
    """Stores every apuração run."""
    __tablename__ = "apuracao_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    run_id = Column(String(80), unique=True, nullable=False, index=True)
    company_id = Column(String(64), nullable=False, index=True)
    period = Column(String(16), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    status = Column(String(20), nullable=False, index=True)
    confidence = Column(Float, default=0.0)
    latency_ms = Column(Float, default=0.0)

    # Totals
    items_count = Column(Integer, default=0)
    rules_count = Column(Integer, default=0)
    total_operation_value = Column(Float, default=0.0)
    total_tax_base = Column(Float, default=0.0)
    total_tax_amount = Column(Float, default=0.0)
    total_substitution_amount = Column(Float, default=0.0)
    total_differential_amount = Column(Float, default=0.0)
    balance = Column(Float, default=0.0)

    observations = Column(JSON, default=list)

    # Full JSON
    raw_json = Column(JSON, default=dict)

    def __repr__(self):
        return f"<ApuracaoRun {self.run_id} [{self.status}] confidence={self.confidence}>"

    @classmethod
    def from_run(cls, run: ApuracaoRun) -> "ApuracaoRunRecord":
        """Create a record from a domain run."""
        totals = run.totals
        return cls(
            run_id=run.id,
            company_id=run.company_id,
            period=run.period,
            created_at=run.created_at,
            status=run.status.value,
            confidence=run.confidence,
            latency_ms=run.latency_ms,
            items_count=len(run.items),
            rules_count=len(run.rules_applied),
            total_operation_value=totals.operation_value,
            total_tax_base=totals.tax_base,
            total_tax_amount=totals.tax_amount,
            total_substitution_amount=totals.substitution_amount,
            total_differential_amount=totals.differential_amount,
            balance=totals.balance,
            observations=list(run.observations),
            raw_json=run.to_dict(),
        )
