import json
from types import SimpleNamespace

import pytest

from apuracao.core.errors import ExtractionFailure
from apuracao.core.interfaces.rule_extractor import ExtractionOk
from apuracao.infrastructure.llm.gemini_extractor import GeminiRuleExtractor


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def generate_content(self, model, contents, config):
        self.prompts.append(contents[0])
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def extractor_with(**kwargs):
    models = FakeModels(**kwargs)
    extractor = GeminiRuleExtractor(
        api_key="test", formula_ids=["halveBase", "fixedRate"], client=SimpleNamespace(models=models)
    )
    return extractor, models


RULES = [{"name": "Redução", "kind": "base_reduction", "calculations": [], "confidence": 90}]


@pytest.mark.parametrize("raw", [
    json.dumps(RULES),
    "```json\n" + json.dumps(RULES) + "\n```",
    json.dumps({"rules": RULES}),
    json.dumps(RULES[0]),
])
def test_parse_candidates(raw):
    assert GeminiRuleExtractor.parse_candidates(raw) == RULES


def test_parse_candidates_rejeita_escalar():
    with pytest.raises(ValueError):
        GeminiRuleExtractor.parse_candidates("42")


def test_extract_ok_e_prompt_lista_formulas():
    extractor, models = extractor_with(text=json.dumps(RULES))
    result = extractor.extract("NCM 8432: base reduzida")

    assert isinstance(result, ExtractionOk)
    assert result.candidates == RULES
    assert "halveBase, fixedRate" in models.prompts[0]
    assert "NCM 8432" in models.prompts[0]


@pytest.mark.parametrize("kwargs,fragment", [
    ({"text": ""}, "Empty response"),
    ({"text": "não é json"}, "JSON parse error"),
    ({"text": "42"}, "Unexpected LLM output"),
    ({"error": ConnectionError("offline")}, "LLM error"),
])
def test_extract_falhas_viram_extraction_failure(kwargs, fragment):
    extractor, _ = extractor_with(**kwargs)
    result = extractor.extract("texto")
    assert isinstance(result, ExtractionFailure)
    assert fragment in result.reason
