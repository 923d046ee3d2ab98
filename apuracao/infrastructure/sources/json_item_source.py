"""
Adapter: JSON Line Item Source

Reads documents already normalized by the upstream parsers
(NF-e / SPED readers), one JSON file per document:

    <items_dir>/<document_id>.json
    {
        "document_id": "...", "company_id": "...", "period": "2024-05",
        "number": "123", "date": "2024-05-10",
        "items": [{"ncm": "...", "cfop": "5102", "valor_total": 100.0, ...}]
    }

Malformed classification codes do not drop the item: they are
recorded in the item's warnings.
"""

import hashlib
import json
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

from apuracao.core.entities.line_item import LineItem
from apuracao.core.errors import ItemProcessingFailure
from apuracao.core.interfaces.line_item_source import ILineItemSource

logger = logging.getLogger(__name__)


# campo do LineItem → chaves aceitas no registro normalizado
KEY_ALIASES: dict[str, tuple[str, ...]] = {
    "product": ("product", "descricao", "description"),
    "classification_code": ("classification_code", "ncm"),
    "operation_code": ("operation_code", "cfop"),
    "tax_situation_code": ("tax_situation_code", "cst"),
    "origin_uf": ("origin_uf", "uf_origem", "ufOrigem"),
    "destination_uf": ("destination_uf", "uf_destino", "ufDestino"),
    "client_type": ("client_type", "tipo_cliente", "tipoCliente"),
    "operation_value": ("operation_value", "valor_total", "valorTotal", "valor"),
    "tax_base": ("tax_base", "base_calculo", "baseCalculo"),
    "rate": ("rate", "aliquota_icms", "aliquotaIcms", "aliquota"),
    "tax_amount": ("tax_amount", "valor_icms", "valorIcms"),
}


def _pick(record: dict, field: str) -> Any:
    for key in KEY_ALIASES[field]:
        if key in record and record[key] not in (None, ""):
            return record[key]
    return None


def parse_money(value: Any) -> float:
    """Aceita 1234.5, "1234.50" e "1.234,50"."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace("R$", "").replace("%", "").strip()
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_date(value: Any) -> date | None:
    if not value:
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


def check_codes(document_ref: str, ncm: str, cfop: str) -> None:
    """
    Raises:
        ItemProcessingFailure: NCM/CFOP ausente ou malformado.
    """
    if not ncm:
        raise ItemProcessingFailure(document_ref, "missing classification code (NCM)")
    if not re.fullmatch(r"\d{8}", ncm):
        raise ItemProcessingFailure(document_ref, f"malformed classification code '{ncm}'")
    if cfop and not re.fullmatch(r"\d{4}", cfop):
        raise ItemProcessingFailure(document_ref, f"malformed operation code '{cfop}'")


def parse_line_item(record: dict, document_ref: str, doc_date: date | None = None) -> LineItem:
    """Normalized record → LineItem. Code problems become warnings."""
    ncm = re.sub(r"\D", "", str(_pick(record, "classification_code") or ""))
    cfop = re.sub(r"\D", "", str(_pick(record, "operation_code") or ""))
    operation_value = parse_money(_pick(record, "operation_value"))
    tax_base = _pick(record, "tax_base")

    item = LineItem(
        document_ref=document_ref,
        date=parse_date(record.get("date")) or doc_date,
        product=str(_pick(record, "product") or ""),
        classification_code=ncm,
        operation_code=cfop,
        tax_situation_code=str(_pick(record, "tax_situation_code") or "").strip(),
        origin_uf=str(_pick(record, "origin_uf") or "").strip().upper(),
        destination_uf=str(_pick(record, "destination_uf") or "").strip().upper(),
        client_type=str(_pick(record, "client_type") or "").strip(),
        operation_value=operation_value,
        tax_base=parse_money(tax_base) if tax_base is not None else operation_value,
        rate=parse_money(_pick(record, "rate")),
        tax_amount=parse_money(_pick(record, "tax_amount")),
    )

    try:
        check_codes(document_ref, ncm, cfop)
    except ItemProcessingFailure as e:
        logger.warning(f"Item warning: {e}")
        item = item.with_warning(e.reason)
    return item


class JsonLineItemSource(ILineItemSource):
    """Line items from normalized JSON documents on disk."""

    def __init__(self, items_dir: str | Path):
        self.items_dir = Path(items_dir)

    def fetch_document_items(self, document_id: str) -> list[LineItem]:
        return self._items_of(self._load(self.items_dir / f"{document_id}.json"))

    def document_version(self, document_id: str) -> str:
        return hashlib.sha256((self.items_dir / f"{document_id}.json").read_bytes()).hexdigest()

    def fetch_period_items(self, company_id: str, period: str) -> list[LineItem]:
        if not self.items_dir.is_dir():
            raise FileNotFoundError(f"Items directory not found: {self.items_dir}")
        items: list[LineItem] = []
        for path in sorted(self.items_dir.glob("*.json")):
            doc = self._load(path)
            if doc.get("company_id") == company_id and doc.get("period") == period:
                items.extend(self._items_of(doc))
        logger.info(f"Loaded {len(items)} items for {company_id} {period}")
        return items

    @staticmethod
    def _load(path: Path) -> dict:
        with path.open(encoding="utf-8") as f:
            doc = json.load(f)
        if not isinstance(doc, dict):
            raise ValueError(f"{path.name}: expected a JSON object")
        doc.setdefault("document_id", path.stem)
        return doc

    @staticmethod
    def _items_of(doc: dict) -> list[LineItem]:
        ref = str(doc.get("number") or doc["document_id"])
        doc_date = parse_date(doc.get("date"))
        return [parse_line_item(r, ref, doc_date) for r in doc.get("items", []) if isinstance(r, dict)]
