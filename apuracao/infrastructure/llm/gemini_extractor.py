"""
LLM Rule Extractor — Gemini-powered extraction of ICMS rules.

Receives raw rule-source text (spreadsheet/report dump) and asks the
model for a JSON array of candidate rules. Never raises: network and
parsing problems come back as ExtractionFailure.

Uses the `google-genai` SDK.
"""
import json
import logging
import time

from apuracao.core.errors import ExtractionFailure
from apuracao.core.interfaces.rule_extractor import ExtractionOk, ExtractionResult, IRuleExtractor

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a Brazilian tax (ICMS) specialist. You read rule descriptions and turn them into structured rules.

IMPORTANT: Respond ONLY with a JSON array, no markdown, no backticks, no extra text.

Each element must have this format:
{
    "name": "Rule name",
    "description": "Detailed description",
    "kind": "base_reduction" | "presumed_credit" | "surcharge_benefit" | "interstate_differential" | "fixed_asset_credit" | "substitution_tax" | "exemption",
    "conditions": [
        {
            "field": "classification_code" | "operation_code" | "tax_situation_code" | "origin_uf" | "destination_uf" | "client_type" | "operation_value" | "tax_base" | "rate",
            "operator": "equals" | "not_equals" | "contains" | "starts_with" | "greater_than" | "less_than" | "between",
            "value": "value, or [min, max] for between",
            "join": "AND" | "OR"
        }
    ],
    "calculations": [
        {
            "kind": "tax_base" | "rate" | "credit" | "substitution_tax" | "differential",
            "formula": "one of the formula ids listed below",
            "parameters": ["numeric literals or item field names"],
            "target": "optional item field to write"
        }
    ],
    "priority": 1 to 10,
    "confidence": 0 to 100
}

Rules:
- Use classification_code for NCM, operation_code for CFOP, tax_situation_code for CST
- Percentages are plain numbers (18 means 18%)
- Only use formula ids from the list provided
- If unsure about a rule, lower its confidence instead of inventing details
"""


class GeminiRuleExtractor(IRuleExtractor):
    """Gemini-powered rule extraction."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.0-flash",
        formula_ids: list[str] | None = None,
        timeout_seconds: int = 60,
        client=None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.formula_ids = formula_ids or []
        self.timeout_seconds = timeout_seconds
        self._client = client

    def _get_client(self):
        if self._client is None:
            from google import genai
            self._client = genai.Client(
                api_key=self.api_key,
                http_options={"timeout": self.timeout_seconds * 1000},
            )
        return self._client

    def extract(self, source_text: str) -> ExtractionResult:
        """
        Extract candidate rules from raw text.

        Args:
            source_text: Raw content describing the rules.

        Returns:
            ExtractionOk with raw candidate dicts, or ExtractionFailure.
        """
        t0 = time.perf_counter()
        raw = ""

        try:
            response = self._get_client().models.generate_content(
                model=self.model_name,
                contents=[SYSTEM_PROMPT + "\n\n" + self._build_prompt(source_text)],
                config={
                    "temperature": 0.1,
                    "max_output_tokens": 2048,
                },
            )
            raw = (response.text or "").strip()
            if not raw:
                return ExtractionFailure("Empty response from LLM")

            candidates = self.parse_candidates(raw)
            latency = (time.perf_counter() - t0) * 1000
            logger.info(f"Extracted {len(candidates)} candidate rules in {latency:.0f}ms")
            return ExtractionOk(candidates=candidates, model=self.model_name, latency_ms=round(latency, 1))

        except json.JSONDecodeError as e:
            return ExtractionFailure(f"JSON parse error: {e}. Raw: {raw[:200]}")
        except ValueError as e:
            return ExtractionFailure(f"Unexpected LLM output: {e}")
        except Exception as e:
            return ExtractionFailure(f"LLM error: {e}")

    @staticmethod
    def parse_candidates(raw: str) -> list[dict]:
        """Parse the model output into a list of candidate dicts."""
        text = raw.strip()
        # Handle markdown code blocks
        if text.startswith("```"):
            lines = text.split("\n")
            text = "\n".join(lines[1:])  # remove first line
            if text.rstrip().endswith("```"):
                text = text.rstrip()[:-3]
            text = text.strip()

        data = json.loads(text)
        if isinstance(data, dict):
            data = data.get("rules", [data])
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        return [c for c in data if isinstance(c, dict)]

    def _build_prompt(self, source_text: str) -> str:
        """Build the user prompt with the rule source."""
        parts = ["Extract the ICMS rules from the content below.\n"]
        if self.formula_ids:
            parts.append("## Available formula ids")
            parts.append("  " + ", ".join(self.formula_ids))
        parts.append("\n## Content")
        parts.append(source_text)
        return "\n".join(parts)
