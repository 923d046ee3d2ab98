import json
from datetime import date

import pytest

from apuracao.core.entities.apuracao_run import ApuracaoRun, RunStatus, Totals
from apuracao.core.entities.line_item import LineItem
from apuracao.core.errors import ItemProcessingFailure
from apuracao.infrastructure.cache.ttl_cache import TTLCache
from apuracao.infrastructure.db.database import create_db_engine, init_db, session_scope
from apuracao.infrastructure.db.repository import ApuracaoRunRepository
from apuracao.infrastructure.db.models import ApuracaoRunRecord
from apuracao.infrastructure.sources.json_item_source import (
    JsonLineItemSource,
    check_codes,
    parse_line_item,
    parse_money,
)

from conftest import make_item


# ── Cache ──

class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_cache_expira():
    clock = FakeClock()
    cache = TTLCache(default_ttl_seconds=10, clock=clock)
    cache.set("k", "v")

    clock.now = 9.9
    assert cache.get("k") == "v"
    clock.now = 10.0
    assert cache.get("k") is None
    assert len(cache) == 0


def test_cache_delete_e_clear():
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2, ttl_seconds=5)
    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.clear()
    assert cache.get("b") is None


def test_cache_descarta_expirados_na_escrita():
    clock = FakeClock()
    cache = TTLCache(default_ttl_seconds=1, clock=clock)

    for i in range(1000):
        cache.set(f"apuracao:{i}", i)
        clock.now += 10

    assert len(cache) == 1


def test_cache_limita_entradas():
    cache = TTLCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") == 10
    assert cache.get("c") == 3

    with pytest.raises(ValueError):
        TTLCache(max_entries=0)


# ── Fonte de itens ──

@pytest.mark.parametrize("raw,expected", [
    (1500, 1500.0),
    ("1.500,75", 1500.75),
    ("R$ 1.234,56", 1234.56),
    ("12.5", 12.5),
    (None, 0.0),
    ("", 0.0),
])
def test_parse_money(raw, expected):
    assert parse_money(raw) == pytest.approx(expected)


def test_check_codes():
    check_codes("NF-1", "84321000", "5102")
    with pytest.raises(ItemProcessingFailure):
        check_codes("NF-1", "8432", "5102")
    with pytest.raises(ItemProcessingFailure):
        check_codes("NF-1", "84321000", "51")


def test_parse_line_item_com_chaves_em_portugues():
    item = parse_line_item(
        {"ncm": "8432.10.00", "cfop": "5102", "valor_total": "1.000,00", "aliquota": 18, "uf_destino": "sp"},
        "NF-7",
        date(2024, 5, 10),
    )
    assert item.classification_code == "84321000"
    assert item.operation_value == 1000.0
    assert item.tax_base == 1000.0
    assert item.destination_uf == "SP"
    assert item.date == date(2024, 5, 10)
    assert item.warnings == ()


def test_item_preserva_data_nos_snapshots():
    item = LineItem(document_ref="NF-1", date=date(2024, 5, 10), tax_base=100.0)
    updated = item.with_values(tax_base=50.0).with_warning("x")

    assert updated.date == date(2024, 5, 10)
    assert LineItem(document_ref="NF-2").date is None


def test_ncm_malformado_vira_warning():
    item = parse_line_item({"ncm": "123", "cfop": "5102", "valor": 10}, "NF-8")
    assert item.warnings


def test_json_source(tmp_path):
    doc = {
        "company_id": "acme",
        "period": "2024-05",
        "number": "123",
        "date": "2024-05-10",
        "items": [{"ncm": "84321000", "cfop": "5102", "valor": 100}],
    }
    (tmp_path / "doc-1.json").write_text(json.dumps(doc), encoding="utf-8")
    (tmp_path / "doc-2.json").write_text(json.dumps(dict(doc, period="2024-06")), encoding="utf-8")
    source = JsonLineItemSource(tmp_path)

    items = source.fetch_document_items("doc-1")
    assert len(items) == 1
    assert items[0].document_ref == "123"

    assert len(source.fetch_period_items("acme", "2024-05")) == 1
    assert source.fetch_period_items("other", "2024-05") == []

    with pytest.raises(FileNotFoundError):
        source.fetch_document_items("missing")


def test_json_source_versao_muda_com_o_arquivo(tmp_path):
    path = tmp_path / "doc-1.json"
    path.write_text(json.dumps({"items": [{"ncm": "84321000", "cfop": "5102", "valor": 100}]}), encoding="utf-8")
    source = JsonLineItemSource(tmp_path)
    before = source.document_version("doc-1")

    assert source.document_version("doc-1") == before
    path.write_text(json.dumps({"items": [{"ncm": "84321000", "cfop": "5102", "valor": 200}]}), encoding="utf-8")
    assert source.document_version("doc-1") != before


def test_json_source_sem_diretorio(tmp_path):
    with pytest.raises(FileNotFoundError):
        JsonLineItemSource(tmp_path / "nope").fetch_period_items("acme", "2024-05")


# ── Store SQL ──

@pytest.fixture
def store(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'runs.db'}")
    return ApuracaoRunRepository(init_db(engine))


def make_run(run_id="apuracao_acme_2024-05_1", status=RunStatus.COMPLETED, confidence=80.0):
    return ApuracaoRun(
        id=run_id,
        company_id="acme",
        period="2024-05",
        status=status,
        items=(make_item(tax_amount=18.0),),
        totals=Totals(tax_amount=18.0, balance=18.0),
        confidence=confidence,
        observations=("ok",),
    )


def test_store_grava_e_le(store):
    run = make_run()
    store.save(run)

    data = store.get(run.id)
    assert data["id"] == run.id
    assert data["totals"]["tax_amount"] == 18.0
    assert store.get("missing") is None


def test_store_append_only(store):
    store.save(make_run(confidence=80.0))
    store.save(make_run(confidence=10.0))
    assert store.get("apuracao_acme_2024-05_1")["confidence"] == 80.0


def test_store_lista_e_estatisticas(store):
    store.save(make_run("r1"))
    store.save(make_run("r2", status=RunStatus.FAILED, confidence=0.0))

    assert len(store.list_runs("acme")) == 2
    assert store.list_runs("other") == []

    stats = store.get_stats()
    assert stats["total"] == 2
    assert stats["completed"] == 1
    assert stats["failed"] == 1
    assert stats["avg_confidence"] == 40.0


def test_session_scope_desfaz_em_erro(tmp_path):
    factory = init_db(create_db_engine(f"sqlite:///{tmp_path / 'scope.db'}"))

    with pytest.raises(RuntimeError):
        with session_scope(factory) as db:
            db.add(ApuracaoRunRecord.from_run(make_run("r-rollback")))
            db.flush()
            raise RuntimeError("boom")

    with session_scope(factory) as db:
        assert db.query(ApuracaoRunRecord).filter_by(run_id="r-rollback").first() is None


def test_init_db_idempotente(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'twice.db'}")
    store = ApuracaoRunRepository(init_db(engine))
    store.save(make_run("r1"))

    again = ApuracaoRunRepository(init_db(engine))
    assert again.get("r1")["id"] == "r1"
