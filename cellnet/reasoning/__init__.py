"""Reasoning collaborators: route planner, help and purpose interpreters.

- protocols: the contracts the engine consumes
- local: deterministic implementations (offline default, tests)
- llm: OpenAI-compatible implementations
"""

from __future__ import annotations

from cellnet.config import NetworkConfig
from cellnet.reasoning.local import (
    KeywordHelpInterpreter,
    ShortestPathPlanner,
    StaticPurposeInterpreter,
)
from cellnet.reasoning.protocols import (
    ExpertiseRef,
    HelpInterpreter,
    HelpSuggestion,
    PurposeInterpreter,
    RoutePlan,
    RoutePlanner,
)


def build_collaborators(
    config: NetworkConfig,
) -> tuple[RoutePlanner, HelpInterpreter, PurposeInterpreter]:
    """Pick LLM-backed collaborators when enabled, local ones otherwise."""
    if config.llm_enabled:
        from cellnet.reasoning.llm import (
            LLMClient,
            LLMHelpInterpreter,
            LLMPurposeInterpreter,
            LLMRoutePlanner,
        )

        client = LLMClient.from_config(config)
        return LLMRoutePlanner(client), LLMHelpInterpreter(client), LLMPurposeInterpreter(client)
    return ShortestPathPlanner(), KeywordHelpInterpreter(), StaticPurposeInterpreter()


__all__ = [
    "ExpertiseRef",
    "HelpInterpreter",
    "HelpSuggestion",
    "KeywordHelpInterpreter",
    "PurposeInterpreter",
    "RoutePlan",
    "RoutePlanner",
    "ShortestPathPlanner",
    "StaticPurposeInterpreter",
    "build_collaborators",
]
