"""LLM-backed reasoning collaborators using any OpenAI-compatible endpoint.

Works with any provider that exposes an OpenAI-compatible chat completions
API: Anthropic, OpenAI, Ollama, vLLM, LM Studio, etc. Every failure is
raised as an LLMError subclass; the engine catches these at its boundary
and falls back to local behavior.
"""

from __future__ import annotations

import logging

import openai
from openai import OpenAI

from cellnet.config import NetworkConfig
from cellnet.errors import LLMError, LLMTimeoutError
from cellnet.reasoning.parser import LLMResponseParser
from cellnet.reasoning.prompts import (
    HELP_SYSTEM_PROMPT,
    PURPOSE_SYSTEM_PROMPT,
    ROUTE_SYSTEM_PROMPT,
    build_help_prompt,
    build_purpose_prompt,
    build_route_prompt,
)
from cellnet.reasoning.protocols import ExpertiseRef, HelpSuggestion, RoutePlan

logger = logging.getLogger(__name__)


class LLMClient:
    """Thin chat-completions wrapper with lazy client creation."""

    def __init__(
        self,
        base_url: str = "",
        model: str = "sonnet",
        api_key: str = "",
        timeout: float = 20.0,
        max_tokens: int = 400,
    ):
        self.base_url = base_url
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client = None

    @classmethod
    def from_config(cls, config: NetworkConfig) -> LLMClient:
        return cls(
            base_url=config.llm_base_url,
            model=config.llm_model,
            api_key=config.llm_api_key,
            timeout=config.llm_timeout_seconds,
            max_tokens=config.llm_max_tokens,
        )

    def _get_client(self):
        """Lazy-init OpenAI client."""
        if self._client is None:
            if not self.base_url:
                raise LLMError(
                    "LLM base URL not configured. Set via:\n"
                    "  --llm-url=URL              (CLI)\n"
                    "  CELLNET_LLM_BASE_URL=URL   (.env or environment)"
                )
            self._client = OpenAI(
                base_url=self.base_url,
                api_key=self.api_key or "not-set",
                timeout=self.timeout,
            )
        return self._client

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one chat completion and return the text.

        Raises:
            LLMTimeoutError: If the endpoint timed out
            LLMError: For any other API failure
        """
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=0.2,
            )
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(f"LLM call timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            raise LLMError(f"LLM call failed: {e}") from e
        text = response.choices[0].message.content or ""
        logger.debug(f"LLM response ({len(text)} chars)")
        return text


class LLMRoutePlanner:
    """Route planner backed by an LLM."""

    def __init__(self, client: LLMClient, parser: LLMResponseParser | None = None):
        self.client = client
        self._parser = parser or LLMResponseParser()

    def plan(
        self,
        message: str,
        source_id: str,
        target_id: str,
        expertise: dict[str, str],
        connections: dict[str, list[str]],
        condition: str | None = None,
    ) -> RoutePlan:
        prompt = build_route_prompt(message, source_id, target_id, expertise, connections, condition)
        text = self.client.complete(ROUTE_SYSTEM_PROMPT, prompt)
        plan = self._parser.parse_route(text)
        logger.info(f"LLM route {source_id}->{target_id}: {plan.path} - {plan.rationale}")
        return plan


class LLMHelpInterpreter:
    """Help interpreter backed by an LLM."""

    def __init__(self, client: LLMClient, parser: LLMResponseParser | None = None):
        self.client = client
        self._parser = parser or LLMResponseParser()

    def interpret(
        self,
        cell_id: str,
        request_text: str,
        neighbor_expertise: list[ExpertiseRef],
    ) -> HelpSuggestion:
        prompt = build_help_prompt(cell_id, request_text, neighbor_expertise)
        text = self.client.complete(HELP_SYSTEM_PROMPT, prompt)
        return self._parser.parse_help(text, neighbor_expertise)


class LLMPurposeInterpreter:
    """Purpose interpreter backed by an LLM."""

    def __init__(self, client: LLMClient, parser: LLMResponseParser | None = None):
        self.client = client
        self._parser = parser or LLMResponseParser()

    def interpret(self, purpose: str) -> str:
        text = self.client.complete(PURPOSE_SYSTEM_PROMPT, build_purpose_prompt(purpose))
        return self._parser.parse_guidance(text)
