"""LLM response parser: robust JSON extraction and validation."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from cellnet.errors import LLMParseError
from cellnet.reasoning.protocols import ExpertiseRef, HelpSuggestion, RoutePlan

logger = logging.getLogger(__name__)


class LLMResponseParser:
    """Robust parser for reasoning outputs.

    Handles:
    - Clean JSON responses
    - JSON wrapped in markdown code fences
    - camelCase or snake_case keys
    - Malformed JSON with an extractable route list
    """

    def extract_json(self, text: str) -> dict[str, Any] | None:
        """Try to extract a JSON object from response (with or without fences).

        Returns:
            Parsed dict if successful, None otherwise
        """
        cleaned = re.sub(r"```(?:json)?\s*", "", text)
        cleaned = re.sub(r"```\s*$", "", cleaned)

        start = cleaned.find("{")
        end = cleaned.rfind("}") + 1
        if start < 0 or end <= start:
            return None

        try:
            data = json.loads(cleaned[start:end])
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None

    def parse_route(self, text: str) -> RoutePlan:
        """Parse a route planner response.

        Raises:
            LLMParseError: If no route list can be recovered
        """
        data = self.extract_json(text)
        if data is not None:
            route = data.get("route")
            reasoning = _first(data, "reasoning", "rationale", "reason") or ""
            if isinstance(route, list):
                return RoutePlan([str(x).strip() for x in route if str(x).strip()], str(reasoning))

        # Malformed JSON: look for `"route": [ ... ]`
        match = re.search(r'"?route"?\s*:\s*\[([^\]]*)\]', text, re.IGNORECASE)
        if match:
            ids = re.findall(r'"([^"]+)"', match.group(1))
            logger.info(f"Extracted route via regex: {ids}")
            return RoutePlan(ids, "Extracted from partial response")

        raise LLMParseError(text, "LLMResponseParser.parse_route")

    def parse_help(self, text: str, allowed: list[ExpertiseRef]) -> HelpSuggestion:
        """Parse a help interpreter response, keeping only known neighbors.

        Raises:
            LLMParseError: If the response holds no usable JSON object
        """
        data = self.extract_json(text)
        if data is None:
            raise LLMParseError(text, "LLMResponseParser.parse_help")

        items = _first(data, "relevantExpertise", "relevant_expertise", "relevant") or []
        known = {ref.cell_id: ref for ref in allowed}
        relevant: list[ExpertiseRef] = []
        for item in items if isinstance(items, list) else []:
            if isinstance(item, dict):
                cell_id = str(_first(item, "cellId", "cell_id", "id") or "")
            else:
                cell_id = str(item)
            if cell_id in known and known[cell_id] not in relevant:
                relevant.append(known[cell_id])
            elif cell_id:
                logger.warning(f"Help interpreter suggested unknown neighbor '{cell_id}', ignoring")
        reasoning = _first(data, "reasoning", "rationale", "reason") or ""
        return HelpSuggestion(relevant=relevant, rationale=str(reasoning))

    def parse_guidance(self, text: str) -> str:
        """Parse purpose guidance; plain prose is accepted as-is.

        Raises:
            LLMParseError: If the response is empty
        """
        data = self.extract_json(text)
        if data is not None:
            guidance = _first(
                data, "initializationInstructions", "initialization_instructions", "guidance"
            )
            if guidance:
                return str(guidance).strip()
        stripped = text.strip()
        if not stripped:
            raise LLMParseError(text, "LLMResponseParser.parse_guidance")
        return stripped


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return None
