"""
Apuração Run Repository — append-only store.

Handles:
  - Storing completed/failed runs (never overwritten)
  - Fetching a run by id
  - Listing runs per company
  - Aggregated statistics
"""

import logging
from typing import Optional

from sqlalchemy import desc, func

from apuracao.core.entities.apuracao_run import ApuracaoRun
from apuracao.core.interfaces.run_store import IRunStore
from apuracao.infrastructure.db.database import session_scope
from apuracao.infrastructure.db.models import ApuracaoRunRecord

logger = logging.getLogger(__name__)


class ApuracaoRunRepository(IRunStore):
    """Repository for apuração runs."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def save(self, run: ApuracaoRun) -> None:
        """Save a run. An already stored final run is left untouched."""
        with session_scope(self._session_factory) as db:
            existing = db.query(ApuracaoRunRecord).filter_by(run_id=run.id).first()
            if existing:
                logger.debug(f"Run {run.id} already stored [{existing.status}], skipping")
                return
            db.add(ApuracaoRunRecord.from_run(run))
            logger.info(f"Saved run {run.id} [{run.status.value}] confidence={run.confidence}")

    def get(self, run_id: str) -> Optional[dict]:
        with session_scope(self._session_factory) as db:
            record = db.query(ApuracaoRunRecord).filter_by(run_id=run_id).first()
            if record:
                return record.raw_json
            return None

    def list_runs(self, company_id: str, limit: int = 50) -> list[dict]:
        with session_scope(self._session_factory) as db:
            records = (
                db.query(ApuracaoRunRecord)
                .filter_by(company_id=company_id)
                .order_by(desc(ApuracaoRunRecord.created_at))
                .limit(limit)
                .all()
            )
            return [r.raw_json for r in records]

    def get_stats(self) -> dict:
        """Get aggregated statistics."""
        with session_scope(self._session_factory) as db:
            total = db.query(ApuracaoRunRecord).count()
            completed = db.query(ApuracaoRunRecord).filter_by(status="completed").count()
            failed = db.query(ApuracaoRunRecord).filter_by(status="failed").count()
            avg_confidence = db.query(func.avg(ApuracaoRunRecord.confidence)).scalar() or 0
            avg_latency = db.query(func.avg(ApuracaoRunRecord.latency_ms)).scalar() or 0
            return {
                "total": total,
                "completed": completed,
                "failed": failed,
                "avg_confidence": round(float(avg_confidence), 2),
                "avg_latency_ms": round(float(avg_latency), 1),
            }
