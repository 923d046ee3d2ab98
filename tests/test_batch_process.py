import pytest

from apuracao.core.errors import ItemProcessingFailure
from apuracao.core.use_cases.batch_process import BatchCoordinator, document_fingerprint
from apuracao.core.use_cases.run_apuracao import ApuracaoOrchestrator
from apuracao.infrastructure.cache.ttl_cache import TTLCache

from conftest import FakeItemSource, make_item, make_rule, tax_step


@pytest.fixture
def source():
    return FakeItemSource(documents={
        "doc-1": [make_item(document_ref="doc-1", tax_base=100.0)],
        "doc-2": ItemProcessingFailure("doc-2", "malformed classification code '12'"),
        "doc-3": [make_item(document_ref="doc-3", tax_base=200.0)],
    })


@pytest.fixture
def batch(repo, source):
    repo.admit("acme", make_rule("tax", calculations=[tax_step()]))
    orchestrator = ApuracaoOrchestrator(repo, source)
    return BatchCoordinator(orchestrator, source, cache=TTLCache(60), concurrency=2)


def test_falha_de_um_documento_nao_aborta_o_lote(batch):
    result = batch.process("acme", "2024-05", ["doc-1", "doc-2", "doc-3"])

    assert result.total == 3
    assert result.success_count == 2
    assert result.error_count == 1
    assert result.success is False
    assert [r.document_id for r in result.results] == ["doc-1", "doc-2", "doc-3"]

    failed = result.results[1]
    assert not failed.success
    assert "malformed" in failed.error
    assert failed.run is None


def test_resumo_soma_apenas_sucessos(batch):
    result = batch.process("acme", "2024-05", ["doc-1", "doc-2", "doc-3"])
    # 18% sobre 100 + 18% sobre 200
    assert result.summary.tax_amount == pytest.approx(54.0)


def test_documento_repetido_vem_do_cache(batch, source):
    first = batch.process("acme", "2024-05", ["doc-1"])
    second = batch.process("acme", "2024-05", ["doc-1"])

    assert source.document_calls.count("doc-1") == 1
    assert second.results[0].fingerprint == first.results[0].fingerprint
    assert second.results[0].cached is True
    assert second.results[0].run.id == first.results[0].run.id


def test_nova_regra_invalida_o_cache(repo, source):
    orchestrator = ApuracaoOrchestrator(repo, source)
    batch = BatchCoordinator(orchestrator, source, cache=TTLCache(60))

    before = batch.process("acme", "2024-05", ["doc-1"]).results[0]
    assert before.run.totals.tax_amount == 0.0

    repo.admit("acme", make_rule("tax", calculations=[tax_step()]))
    after = batch.process("acme", "2024-05", ["doc-1"]).results[0]

    assert after.cached is False
    assert after.fingerprint != before.fingerprint
    assert after.run.totals.tax_amount == pytest.approx(18.0)


def test_documento_alterado_nao_usa_cache(batch, source):
    first = batch.process("acme", "2024-05", ["doc-1"]).results[0]

    source.documents["doc-1"] = [make_item(document_ref="doc-1", tax_base=1000.0)]
    second = batch.process("acme", "2024-05", ["doc-1"]).results[0]

    assert second.cached is False
    assert second.run.id != first.run.id
    assert second.run.totals.tax_amount == pytest.approx(180.0)


def test_documento_inexistente_vira_erro(batch):
    result = batch.process("acme", "2024-05", ["doc-9"]).results[0]

    assert not result.success
    assert "unavailable" in result.error
    assert result.fingerprint


def test_falhas_sao_reprocessadas(batch, source):
    batch.process("acme", "2024-05", ["doc-2"])
    batch.process("acme", "2024-05", ["doc-2"])
    assert source.document_calls.count("doc-2") == 2


def test_fingerprint_deterministico():
    assert document_fingerprint("acme", "2024-05", "doc-1") == document_fingerprint("acme", "2024-05", "doc-1")
    assert document_fingerprint("acme", "2024-05", "doc-1") != document_fingerprint("acme", "2024-06", "doc-1")
    assert document_fingerprint("acme", "2024-05", "doc-1", "a", "v1") != document_fingerprint(
        "acme", "2024-05", "doc-1", "a", "v2"
    )


def test_to_dict_serializavel(batch):
    data = batch.process("acme", "2024-05", ["doc-1", "doc-2"]).to_dict()
    assert data["success"] is False
    assert data["results"][0]["run"]["status"] == "completed"
    assert data["results"][1]["run"] is None
