"""Structured error hierarchy for cellnet."""


class CellnetError(Exception):
    """Base for all cellnet errors."""

    pass


class CollaboratorError(CellnetError):
    """An external reasoning collaborator failed."""

    pass


class PlannerError(CollaboratorError):
    """Route planner failed or returned unusable output."""

    pass


class InterpreterError(CollaboratorError):
    """Help or purpose interpreter failed."""

    pass


class LLMError(CollaboratorError):
    """LLM-specific failure."""

    pass


class LLMParseError(LLMError):
    """Failed to parse LLM response."""

    def __init__(self, raw_response: str, parse_method: str):
        self.raw_response = raw_response
        self.parse_method = parse_method
        super().__init__(f"Failed to parse LLM response via {parse_method}")


class LLMTimeoutError(LLMError):
    """LLM call timed out."""

    pass


class EngineStateError(CellnetError):
    """Engine in invalid state for requested operation."""

    pass


class ValidationError(CellnetError):
    """Input validation at boundary failed."""

    pass


class PurposeError(CellnetError):
    """Setting the network purpose could not obtain guidance."""

    pass


class HelpRequestError(CellnetError):
    """A help request could not be delivered even via broadcast."""

    pass
