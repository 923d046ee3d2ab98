"""
Routes: /apuracao, /batch, /pricing — execução e consulta de apurações.
"""

from fastapi import APIRouter, Depends, HTTPException

from apuracao.api.dependencies import Services, get_services
from apuracao.api.schemas.requests import ApuracaoRequest, BatchRequest, PricingRequest
from apuracao.api.schemas.responses import (
    ApuracaoResponse,
    BatchResponse,
    PricingResponse,
)
from apuracao.infrastructure.sources.json_item_source import parse_line_item

router = APIRouter()


@router.post("/apuracao", response_model=ApuracaoResponse)
async def run_apuracao(req: ApuracaoRequest, services: Services = Depends(get_services)):
    """
    Run an apuração for a company and period.

    Items may come inline (normalized records); otherwise they are read
    from the configured line item source. A failed run is still returned
    (status "failed", confidence 0) with the reason in observations.
    """
    items = None
    if req.items is not None:
        items = [
            parse_line_item(record, str(record.get("document_ref") or f"request-{i + 1}"))
            for i, record in enumerate(req.items)
        ]

    run = services.orchestrator.execute(
        req.company_id,
        req.period,
        items=items,
        source_text=req.source_text,
    )
    return ApuracaoResponse.model_validate(run.to_dict())


@router.get("/apuracao/{run_id}")
async def get_apuracao(run_id: str, services: Services = Depends(get_services)):
    """Get a run by id (cache first, then the store)."""
    data = services.orchestrator.get_run(run_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Apuração not found")
    return data


@router.get("/companies/{company_id}/apuracoes")
async def list_apuracoes(company_id: str, limit: int = 50, services: Services = Depends(get_services)):
    """Stored runs of a company, newest first."""
    if services.runs is None:
        return []
    return services.runs.list_runs(company_id, limit=limit)


@router.post("/batch", response_model=BatchResponse)
async def run_batch(req: BatchRequest, services: Services = Depends(get_services)):
    """
    One apuração per document. A failing document does not abort the
    batch; its error stays in its own result.
    """
    result = services.batch.process(req.company_id, req.period, req.document_ids)
    return BatchResponse.model_validate(result.to_dict())


@router.post("/pricing/assess", response_model=PricingResponse)
async def assess_pricing(req: PricingRequest, services: Services = Depends(get_services)):
    """Margin over cost against the configured minimum / ideal / maximum."""
    assessment = services.pricing.assess(req.cost, req.price)
    return PricingResponse(
        cost=assessment.cost,
        price=assessment.price,
        margin_percent=assessment.margin_percent,
        status=assessment.status.value,
        suggested_price=assessment.suggested_price,
    )
