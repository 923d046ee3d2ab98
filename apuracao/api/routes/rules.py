"""
Routes: /rules — administração e extração de regras por empresa.
"""

import logging
from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from apuracao.api.dependencies import Services, get_services
from apuracao.api.schemas.requests import ExtractionRequest
from apuracao.api.schemas.responses import ExtractionResponse, RejectedCandidateResponse
from apuracao.core.entities.apuracao_run import to_jsonable
from apuracao.core.entities.rule import Rule, RuleProvenance
from apuracao.core.errors import ValidationRejection

logger = logging.getLogger(__name__)

router = APIRouter()


def rule_to_dict(rule: Rule) -> dict:
    return to_jsonable(asdict(rule))


@router.post("/rules/{company_id}", status_code=201)
async def create_rule(company_id: str, payload: dict, services: Services = Depends(get_services)):
    """
    Manual rule admission.

    Accepts the same vocabulary the extractor produces (English or
    Portuguese keys). Rejections return 422 with the reason.
    """
    try:
        rule = services.validator.validate_candidate(
            payload, company_id=company_id, provenance=RuleProvenance.MANUAL
        )
        with services.rules.writer_lock(company_id):
            admitted = services.rules.admit(company_id, rule)
    except ValidationRejection as e:
        logger.warning(f"Manual rule rejected [{company_id}]: {e}")
        raise HTTPException(status_code=422, detail=f"{e.rule_name}: {e.reason}")
    return rule_to_dict(admitted)


@router.get("/rules/{company_id}")
async def list_rules(company_id: str, include_inactive: bool = False, services: Services = Depends(get_services)):
    """Rules of a company, highest priority first."""
    return [rule_to_dict(r) for r in services.rules.list_rules(company_id, include_inactive=include_inactive)]


@router.delete("/rules/{company_id}/{rule_id}")
async def deactivate_rule(company_id: str, rule_id: str, services: Services = Depends(get_services)):
    """Soft delete: the rule stays for audit but stops matching."""
    with services.rules.writer_lock(company_id):
        found = services.rules.deactivate(company_id, rule_id)
    if not found:
        raise HTTPException(status_code=404, detail="Rule not found")
    return {"id": rule_id, "active": False}


@router.post("/rules/{company_id}/extract", response_model=ExtractionResponse)
async def extract_rules(company_id: str, req: ExtractionRequest, services: Services = Depends(get_services)):
    """Extract candidate rules from free text with the LLM and admit the valid ones."""
    if services.extraction is None:
        raise HTTPException(status_code=503, detail="LLM not configured. Set GEMINI_API_KEY in .env")

    report = services.extraction.run(company_id, req.source_text)
    return ExtractionResponse(
        company_id=report.company_id,
        admitted=[rule_to_dict(r) for r in report.admitted],
        rejected=[RejectedCandidateResponse(name=r.name, reason=r.reason) for r in report.rejected],
        failure=report.failure,
        degraded=report.degraded,
        attempts=report.attempts,
        latency_ms=report.latency_ms,
    )


@router.post("/rules/{company_id}/expire")
async def expire_rules(company_id: str, today: date | None = None, services: Services = Depends(get_services)):
    """Deactivate rules whose validity window ended before `today` (default: current date)."""
    count = services.rules.deactivate_expired(company_id, today or date.today())
    return {"company_id": company_id, "deactivated": count}
