"""
Pydantic schemas — Request models para a API.
"""

from pydantic import BaseModel, Field


class ApuracaoRequest(BaseModel):
    company_id: str
    period: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="YYYY-MM")
    items: list[dict] | None = Field(None, description="Itens normalizados; se ausente, usa a fonte configurada")
    source_text: str | None = Field(None, description="Texto-fonte para extração de regras antes da apuração")


class BatchRequest(BaseModel):
    company_id: str
    period: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    document_ids: list[str] = Field(..., min_length=1)


class ExtractionRequest(BaseModel):
    source_text: str = Field(..., min_length=1)


class PricingRequest(BaseModel):
    cost: float = Field(..., gt=0)
    price: float = Field(..., ge=0)
