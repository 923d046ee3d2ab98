"""Try the Gemini rule extractor on a sample rule description and run an apuração with the result."""
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))

from apuracao.core.rules.formulas import default_registry
from apuracao.core.rules.validator import RuleValidator
from apuracao.core.use_cases.extract_rules import RuleExtractionPipeline
from apuracao.core.use_cases.run_apuracao import ApuracaoOrchestrator
from apuracao.infrastructure.llm.gemini_extractor import GeminiRuleExtractor
from apuracao.infrastructure.repository.memory_rule_repository import InMemoryRuleRepository
from apuracao.infrastructure.sources.json_item_source import JsonLineItemSource, parse_line_item

logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")

api_key = os.getenv("GEMINI_API_KEY")
if not api_key:
    print("ERROR: GEMINI_API_KEY not set in .env")
    sys.exit(1)

SOURCE_TEXT = """
Regra: Redução de base de cálculo - máquinas agrícolas
NCM iniciando em 8432, CFOP 5102. Base de cálculo reduzida em 50%.

Regra: Crédito presumido - laticínios
NCM 04012010 com CST 00. Crédito presumido de 3% sobre a base.
"""

registry = default_registry()
validator = RuleValidator(registry, confidence_threshold=70.0)
repo = InMemoryRuleRepository(validator)
pipeline = RuleExtractionPipeline(
    extractor=GeminiRuleExtractor(api_key=api_key, formula_ids=registry.names()),
    validator=validator,
    repository=repo,
)

report = pipeline.run("demo", SOURCE_TEXT)
print("=" * 60)
print(f"Attempts: {report.attempts}  Failure: {report.failure}")
for rule in report.admitted:
    print(f"  ADMITTED {rule.name} [{rule.kind.value}] confidence={rule.confidence}")
for rejected in report.rejected:
    print(f"  REJECTED {rejected.name}: {rejected.reason}")

items = [
    parse_line_item({"ncm": "84321000", "cfop": "5102", "valor": "1.000,00", "aliquota": 18}, "NF-1"),
    parse_line_item({"ncm": "04012010", "cfop": "5102", "cst": "00", "valor": 250, "aliquota": 12}, "NF-2"),
]
run = ApuracaoOrchestrator(repo, JsonLineItemSource("data/items")).execute("demo", "2024-01", items=items)
print("=" * 60)
print(json.dumps(run.to_dict()["totals"], indent=2, ensure_ascii=False))
print(f"Confidence: {run.confidence}")
for obs in run.observations:
    print(f"  - {obs}")
