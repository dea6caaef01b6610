"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """Return warnings for settings that are valid but probably unintended.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    messages = []

    matching = config_dict.get("matching", {})
    if isinstance(matching, dict):
        candidate_limit = matching.get("candidate_limit", 20)
        if isinstance(candidate_limit, int) and candidate_limit > 100:
            messages.append(
                f"Large matching.candidate_limit ({candidate_limit}) makes every match slower"
            )

    scoring = config_dict.get("scoring", {})
    if isinstance(scoring, dict):
        zero_weights = sorted(
            key for key, value in scoring.items() if key.endswith("_weight") and value == 0
        )
        if zero_weights:
            messages.append(f"Scoring rules disabled by zero weight: {', '.join(zero_weights)}")

    notifications = config_dict.get("notifications", {})
    if isinstance(notifications, dict) and notifications.get("background") is False:
        messages.append(
            "notifications.background is false; notification writes will run inline"
        )

    return messages


def emit_warnings(messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in messages:
        warnings.warn(message, UserWarning, stacklevel=2)
