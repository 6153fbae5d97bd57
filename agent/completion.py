"""
Completion-check policy.

Long tasks are asked for a structured "are you done?" verdict more and more
often as rounds accumulate, and always near the round cap.
"""

import json
import logging
from typing import Tuple

logger = logging.getLogger(__name__)

COMPLETION_SCHEMA = json.dumps({
    "type": "object",
    "properties": {
        "taskComplete": {
            "type": "boolean",
            "description": "Whether the task is fully complete and no more tool calls are needed",
        },
        "finalSummary": {
            "type": "string",
            "description": "Final comprehensive summary of findings and results",
        },
        "reasoning": {
            "type": "string",
            "description": "Explanation of why the task is or is not complete",
        },
    },
    "required": ["taskComplete", "finalSummary"],
}, indent=2)

FINAL_SUMMARY_SCHEMA = json.dumps({
    "type": "object",
    "properties": {
        "finalSummary": {
            "type": "string",
            "description": "Final comprehensive summary of findings and results",
        },
    },
    "required": ["finalSummary"],
}, indent=2)

# Rounds at which a check is always requested, whatever the interval says
_CHECKPOINT_ROUNDS = frozenset({5, 10, 15, 20, 30, 50, 75})
# Rounds within this distance of the cap always get a check
_NEAR_CAP = 5
NEVER = 1000


def completion_interval(round_number: int) -> int:
    """How often (every N rounds) to ask for a completion verdict at this round."""
    if round_number <= 2:
        return NEVER
    if round_number <= 6:
        return 10
    if round_number <= 15:
        return 5
    if round_number <= 25:
        return 3
    if round_number <= 40:
        return 2
    return 1


def should_request_completion(round_number: int, max_rounds: int) -> bool:
    """Whether the model call after this round should carry the completion schema."""
    if round_number >= max_rounds - _NEAR_CAP:
        return True
    interval = completion_interval(round_number)
    if interval == 1 or round_number % interval == 0:
        return True
    return round_number in _CHECKPOINT_ROUNDS


def process_response(content: str) -> Tuple[str, bool]:
    """Fold a possibly-structured reply into (answer_text, task_complete).

    A reply that is a JSON object with a string finalSummary yields that
    summary, with taskComplete (default false) as the verdict. Anything else
    is returned verbatim and never counts as complete.
    """
    stripped = content.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        try:
            data = json.loads(stripped)
        except ValueError:
            logger.debug("Reply looked like JSON but did not parse; using raw text")
            return content, False
        if isinstance(data, dict):
            is_complete = data.get("taskComplete") is True
            summary = data.get("finalSummary")
            if isinstance(summary, str):
                return summary, is_complete
    return content, False
