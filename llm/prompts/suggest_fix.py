"""Prompt template for backward-compatible alternatives to a breaking change."""

from __future__ import annotations

from typing import Dict, List, Mapping

SYSTEM_PROMPT = (
    "You are an expert software architect reviewing HTTP API contracts between microservices. "
    "You propose migration paths that keep existing clients working."
)

USER_PROMPT_TEMPLATE = """A breaking change was detected in a microservices API:

Change Type: {change_type}
Location: {path}
Description: {description}
Old Version: {old_version}
New Version: {new_version}

Suggest a backward-compatible alternative approach.
Provide specific, actionable steps that allow gradual migration without breaking existing clients.
Format your response as a numbered list with clear implementation steps."""


def get_prompt(change: Mapping[str, str]) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT_TEMPLATE.format(**change)},
    ]


__all__ = ["get_prompt"]
