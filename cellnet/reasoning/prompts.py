"""Prompt templates for the LLM-backed reasoning collaborators."""

from __future__ import annotations

from cellnet.reasoning.protocols import ExpertiseRef

ROUTE_SYSTEM_PROMPT = """You are a message routing expert within a simulated cellular network. \
Your task is to find the most efficient and logical path for a message from a current cell \
to a target cell.

You MUST adhere to the following constraints:
1. Connectivity: messages can ONLY travel between cells listed in the connections. A route \
MUST consist of a sequence of directly connected cells.
2. Viability: only cells listed with an expertise exist and are alive. Do NOT route through \
other cells.
3. Path format: the route MUST start with the current cell and end with the target cell.
4. Efficiency: prefer shorter paths unless the message content strongly suggests routing \
through a specific expert cell.
5. No path: if no valid path exists, the route must contain ONLY the current cell.

Respond with a single JSON object: {"route": ["<cell id>", ...], "reasoning": "<why>"}"""

HELP_SYSTEM_PROMPT = """You are helping a cell in a network find the most relevant expertise \
among its neighbors to solve its problem.

Respond with a single JSON object: \
{"relevantExpertise": [{"cellId": "<id>", "expertise": "<expertise>"}], "reasoning": "<why>"}
Only list neighbors from the provided list. Return an empty list if none is relevant."""

PURPOSE_SYSTEM_PROMPT = """You are an expert in designing cellular networks. The user provides \
a high-level purpose for the network. Provide concise instructions on how the cells should be \
initialized to achieve it: which expertise each cell should have, which goals it should pursue \
and any initial configuration.

Respond with a single JSON object: {"initializationInstructions": "<instructions>"}"""


def build_route_prompt(
    message: str,
    source_id: str,
    target_id: str,
    expertise: dict[str, str],
    connections: dict[str, list[str]],
    condition: str | None = None,
) -> str:
    lines = [
        f"Message content: {message}",
        f"Current cell ID: {source_id}",
        f"Target cell ID: {target_id}",
        f"Network conditions: {condition or 'Normal'}",
        "Available cells and expertise:",
    ]
    lines.extend(f"- {cid}: {exp}" for cid, exp in expertise.items())
    lines.append("Direct cell connections:")
    lines.extend(f"- {cid} -> [{', '.join(ids)}]" for cid, ids in connections.items())
    return "\n".join(lines)


def build_help_prompt(cell_id: str, request_text: str, neighbors: list[ExpertiseRef]) -> str:
    lines = [
        f"Cell ID: {cell_id}",
        f"Help request: {request_text}",
        "Neighboring cell expertise:",
    ]
    lines.extend(f"- Cell ID: {n.cell_id}, Expertise: {n.expertise}" for n in neighbors)
    return "\n".join(lines)


def build_purpose_prompt(purpose: str) -> str:
    return f"The overall purpose of the cell network is: {purpose}"
