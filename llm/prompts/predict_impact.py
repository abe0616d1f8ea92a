"""Prompt template for predicting which services a breaking change affects."""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

SYSTEM_PROMPT = (
    "You analyse dependencies between microservices from their names and API changes. "
    "Be explicit about uncertainty."
)

USER_PROMPT_TEMPLATE = """A breaking change occurred in the {service_name} microservice:

Change Type: {change_type}
Location: {path}
Description: {description}

Available microservices in the system:
{services_info}

Based on common microservice communication patterns and the nature of this change:
1. Predict which services are most likely to be affected
2. Assign a confidence score (0-100%) for each potentially affected service
3. Explain why each service might be impacted

Format your response as:
Service Name | Confidence | Reason"""


def format_services(known_services: Sequence[str]) -> str:
    lines = [f"- {name}" for name in known_services]
    return "\n".join(lines) if lines else "- (no other services registered)"


def get_prompt(change: Mapping[str, str], known_services: Sequence[str]) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_PROMPT_TEMPLATE.format(services_info=format_services(known_services), **change),
        },
    ]


__all__ = ["format_services", "get_prompt"]
