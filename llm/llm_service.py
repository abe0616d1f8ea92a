"""LLM interaction helpers for breaking-change enrichment."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, cast

import litellm
import yaml
from langfuse import Langfuse

from core.logging import get_logger
from llm.prompts import explain_change, predict_impact, suggest_fix

logger = get_logger(__name__)

DEFAULT_LITELLM_CONFIG = Path(__file__).resolve().parent.parent / "litellm_config.yaml"

if not os.getenv("LITELLM_CONFIG_PATH") and DEFAULT_LITELLM_CONFIG.exists():
    os.environ["LITELLM_CONFIG_PATH"] = str(DEFAULT_LITELLM_CONFIG)


def _apply_litellm_aliases() -> None:
    config_path = os.getenv("LITELLM_CONFIG_PATH")
    if not config_path:
        return
    path = Path(config_path)
    if not path.is_file():
        return
    try:
        config = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to parse LiteLLM config for aliases: %s", exc)
        return
    model_list = config.get("model_list") if isinstance(config, dict) else None
    if not isinstance(model_list, list):
        return
    alias_map: Dict[str, str] = {}
    for entry in model_list:
        if not isinstance(entry, dict):
            continue
        alias = entry.get("model_name")
        params = entry.get("litellm_params")
        if not alias or not isinstance(params, dict):
            continue
        target = params.get("model")
        if isinstance(target, str) and target:
            alias_map.setdefault(alias, target)
    if alias_map:
        litellm.model_alias_map.update(alias_map)


_apply_litellm_aliases()

LANGFUSE_CLIENT: Optional[Any] = None
if os.getenv("LANGFUSE_PUBLIC_KEY") and os.getenv("LANGFUSE_SECRET_KEY"):
    try:
        LANGFUSE_CLIENT = Langfuse(
            public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
            secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
            host=os.getenv("LANGFUSE_HOST"),
        )
        logger.info("Langfuse client initialised.")
    except Exception as exc:
        logger.error("Failed to initialise Langfuse client: %s", exc, exc_info=True)
        LANGFUSE_CLIENT = None

ENRICHMENT_MODEL = os.getenv("LLM_ENRICHMENT_MODEL", "baseline")
QUALITY_FALLBACK_MODEL = os.getenv("LLM_QUALITY_FALLBACK_MODEL", "fallback_model")


def _record_langfuse_event(
    model: str,
    messages: List[Dict[str, Any]],
    *,
    response_content: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    if not LANGFUSE_CLIENT:
        return
    try:
        user_input = ""
        if messages:
            last_message = messages[-1].get("content")
            user_input = last_message if isinstance(last_message, str) else json.dumps(last_message, ensure_ascii=False)
        trace = LANGFUSE_CLIENT.trace(name="contract_enrichment", metadata={"model": model})
        trace.generation(
            name="completion",
            model=model,
            input=user_input[:2000],
            output=(response_content or "")[:2000],
            metadata={"error": error} if error else None,
        )
        if error:
            trace.update(status="error")
        LANGFUSE_CLIENT.flush()
    except Exception as exc:
        logger.debug("Langfuse logging skipped: %s", exc, exc_info=True)


def _choice_content(response: Any) -> str:
    """Best-effort extraction of the first choice's message content from litellm responses."""
    response_any = cast(Any, response)
    choices = getattr(response_any, "choices", None)
    if choices is None and isinstance(response_any, Mapping):
        choices = response_any.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first_choice = choices[0]
    message = getattr(first_choice, "message", None)
    if message is None and isinstance(first_choice, Mapping):
        message = first_choice.get("message")
    if message is None:
        return ""
    if isinstance(message, Mapping):
        content = message.get("content")
    else:
        content = getattr(message, "content", None)
    return content if isinstance(content, str) else ""


def _safe_completion(
    model: str,
    messages: List[Dict[str, Any]],
    *,
    fallback_model: Optional[str] = None,
) -> Tuple[Optional[Any], Optional[str]]:
    try:
        response = litellm.completion(model=model, messages=messages)
        _record_langfuse_event(model, messages, response_content=_choice_content(response))
        return response, model
    except Exception as primary_err:
        logger.warning("LLM call failed for %s: %s", model, primary_err, exc_info=True)
        _record_langfuse_event(model, messages, error=str(primary_err))

        if fallback_model and fallback_model != model:
            try:
                response = litellm.completion(model=fallback_model, messages=messages)
                logger.info("Fallback model %s succeeded after %s failure.", fallback_model, model)
                _record_langfuse_event(fallback_model, messages, response_content=_choice_content(response))
                return response, fallback_model
            except Exception as fallback_err:
                error_message = (
                    f"Primary model {model} error: {primary_err}; fallback {fallback_model} error: {fallback_err}"
                )
                logger.error(error_message, exc_info=True)
                _record_langfuse_event(fallback_model, messages, error=str(fallback_err))
                return None, error_message

        error_message = f"LLM call failed for model {model}: {primary_err}"
        logger.error(error_message, exc_info=True)
        return None, error_message


def _text_completion(
    *,
    label: str,
    messages: List[Dict[str, Any]],
    model: Optional[str] = None,
    fallback_model: Optional[str] = QUALITY_FALLBACK_MODEL,
) -> Dict[str, Any]:
    """Run a free-text prompt; returns ``{"content", "model_used"}`` or ``{"error"}``."""
    response, model_used = _safe_completion(
        model=model or ENRICHMENT_MODEL,
        messages=messages,
        fallback_model=fallback_model,
    )
    if response is None:
        logger.warning("%s failed: %s", label, model_used)
        return {"error": model_used}
    content = _choice_content(response).strip()
    if not content:
        logger.warning("%s returned an empty completion from %s.", label, model_used)
        return {"error": f"empty completion from {model_used}", "model_used": model_used}
    return {"content": content, "model_used": model_used}


def suggest_backward_compatible_fix(change: Mapping[str, str]) -> Dict[str, Any]:
    logger.info("Generating AI suggestion for %s at %s", change.get("change_type"), change.get("path"))
    return _text_completion(label="Fix suggestion", messages=suggest_fix.get_prompt(change))


def predict_change_impact(change: Mapping[str, str], known_services: Sequence[str]) -> Dict[str, Any]:
    logger.info("Predicting impact for %s at %s", change.get("change_type"), change.get("path"))
    return _text_completion(label="Impact prediction", messages=predict_impact.get_prompt(change, known_services))


def explain_in_plain_english(change: Mapping[str, str]) -> Dict[str, Any]:
    logger.info("Generating plain English explanation for %s at %s", change.get("change_type"), change.get("path"))
    return _text_completion(label="Plain English explanation", messages=explain_change.get_prompt(change))


__all__ = [
    "ENRICHMENT_MODEL",
    "QUALITY_FALLBACK_MODEL",
    "explain_in_plain_english",
    "predict_change_impact",
    "suggest_backward_compatible_fix",
]
