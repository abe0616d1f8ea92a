"""Prompt template for explaining a breaking change to non-technical readers."""

from __future__ import annotations

from typing import Dict, List, Mapping

SYSTEM_PROMPT = "You translate technical API changes for product managers and other non-technical stakeholders."

USER_PROMPT_TEMPLATE = """Translate this technical API breaking change into plain English that a non-technical
product manager or stakeholder can understand:

Change Type: {change_type}
Location: {path}
Technical Description: {description}
Old Version: {old_version}
New Version: {new_version}

Provide:
1. A simple one-sentence summary (no jargon)
2. What this means for users/clients of the API
3. The business impact

Keep it concise and avoid technical terminology."""


def get_prompt(change: Mapping[str, str]) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT_TEMPLATE.format(**change)},
    ]


__all__ = ["get_prompt"]
