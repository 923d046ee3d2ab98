import hashlib

import pytest

from apuracao.core.entities.line_item import LineItem
from apuracao.core.entities.rule import (
    CalculationKind,
    CalculationStep,
    Condition,
    ConditionField,
    ConditionOperator,
    ResultTarget,
    Rule,
    RuleKind,
)
from apuracao.core.errors import ExtractionFailure
from apuracao.core.interfaces.line_item_source import ILineItemSource
from apuracao.core.interfaces.rule_extractor import ExtractionOk, IRuleExtractor
from apuracao.core.rules.formulas import default_registry
from apuracao.core.rules.validator import RuleValidator
from apuracao.core.use_cases.run_apuracao import ApuracaoOrchestrator
from apuracao.infrastructure.cache.ttl_cache import TTLCache
from apuracao.infrastructure.repository.memory_rule_repository import InMemoryRuleRepository


class FakeExtractor(IRuleExtractor):
    """Devolve respostas pré-definidas, uma por chamada (a última se repete)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    def extract(self, source_text):
        self.calls += 1
        index = min(self.calls, len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception) and not isinstance(response, ExtractionFailure):
            raise response
        return response


class FakeItemSource(ILineItemSource):
    def __init__(self, period_items=None, documents=None, fail=False):
        self.period_items = period_items or []
        self.documents = documents or {}
        self.fail = fail
        self.document_calls = []

    def fetch_period_items(self, company_id, period):
        if self.fail:
            raise ConnectionError("source offline")
        return list(self.period_items)

    def fetch_document_items(self, document_id):
        self.document_calls.append(document_id)
        value = self.documents[document_id]
        if isinstance(value, Exception):
            raise value
        return list(value)

    def document_version(self, document_id):
        return hashlib.sha256(repr(self.documents[document_id]).encode("utf-8")).hexdigest()


def make_item(**values) -> LineItem:
    defaults = {
        "document_ref": "NF-1",
        "classification_code": "84321000",
        "operation_code": "5102",
        "operation_value": 1000.0,
        "tax_base": 1000.0,
        "rate": 18.0,
    }
    defaults.update(values)
    return LineItem(**defaults)


def make_rule(rule_id="r1", name=None, conditions=(), calculations=None, **values) -> Rule:
    if calculations is None:
        calculations = (CalculationStep(CalculationKind.TAX_BASE, "halveBase"),)
    return Rule(
        id=rule_id,
        name=name or f"Rule {rule_id}",
        kind=values.pop("kind", RuleKind.BASE_REDUCTION),
        conditions=tuple(conditions),
        calculations=tuple(calculations),
        **values,
    )


def ncm_starts_with(prefix: str) -> Condition:
    return Condition(ConditionField.CLASSIFICATION_CODE, ConditionOperator.STARTS_WITH, prefix)


def tax_step(formula="baseTimesRate") -> CalculationStep:
    return CalculationStep(CalculationKind.RATE, formula, target=ResultTarget.TAX_AMOUNT)


def extraction_ok(*candidates) -> ExtractionOk:
    return ExtractionOk(candidates=list(candidates), model="fake")


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def validator(registry):
    return RuleValidator(registry, confidence_threshold=70.0)


@pytest.fixture
def repo(validator):
    return InMemoryRuleRepository(validator, confidence_threshold=70.0)


@pytest.fixture
def cache():
    return TTLCache(default_ttl_seconds=60)


@pytest.fixture
def orchestrator_factory(repo, cache):
    def build(items=None, fail=False, **kwargs):
        source = FakeItemSource(period_items=items, fail=fail)
        return ApuracaoOrchestrator(repo, source, cache=cache, **kwargs)
    return build
