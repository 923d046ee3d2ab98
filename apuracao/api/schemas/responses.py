"""
Pydantic schemas — Response models para a API.
"""

from pydantic import BaseModel


class TotalsResponse(BaseModel):
    operation_value: float
    tax_base: float
    tax_amount: float
    substitution_base: float
    substitution_amount: float
    differential_amount: float
    presumed_credit: float
    balance: float
    by_rule: dict[str, float]


class ApuracaoResponse(BaseModel):
    id: str
    company_id: str
    period: str
    status: str
    confidence: float
    totals: TotalsResponse
    observations: list[str]
    items: list[dict]
    rules_applied: list[dict]
    latency_ms: float = 0.0
    created_at: str


class RejectedCandidateResponse(BaseModel):
    name: str
    reason: str


class ExtractionResponse(BaseModel):
    company_id: str
    admitted: list[dict]
    rejected: list[RejectedCandidateResponse]
    failure: str | None = None
    degraded: bool = False
    attempts: int = 0
    latency_ms: float = 0.0


class DocumentResultResponse(BaseModel):
    document_id: str
    fingerprint: str
    success: bool
    error: str | None = None
    cached: bool = False
    run: dict | None = None
    latency_ms: float = 0.0


class BatchResponse(BaseModel):
    success: bool
    total: int
    success_count: int
    error_count: int
    results: list[DocumentResultResponse]
    summary: TotalsResponse
    latency_ms: float = 0.0


class PricingResponse(BaseModel):
    cost: float
    price: float
    margin_percent: float
    status: str
    suggested_price: float
