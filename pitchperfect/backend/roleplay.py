from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from .llm_client import request_chat_completion, truncate
from .prompts.roleplay import (
    DEFAULT_DIFFICULTY,
    DEFAULT_GOAL,
    DEFAULT_PERSONA,
    DEFAULT_SCENARIO,
    SYSTEM_PROMPT_TEMPLATE,
)


logger = logging.getLogger("uvicorn.error")

FALLBACK_REPLY = "I apologize, I didn't catch that. Could you repeat it?"


def build_system_prompt(context: Optional[dict]) -> str:
    context = context or {}
    values = {
        "persona": str(context.get("persona") or DEFAULT_PERSONA),
        "scenario": str(context.get("scenario") or DEFAULT_SCENARIO),
        "goal": str(context.get("goal") or DEFAULT_GOAL),
        "difficulty": str(context.get("difficulty") or DEFAULT_DIFFICULTY),
    }
    prompt = SYSTEM_PROMPT_TEMPLATE
    for key, value in values.items():
        prompt = prompt.replace("{" + key + "}", value)
    return prompt


def _history_messages(history: Iterable[Any]) -> list[dict]:
    messages = []
    for item in history or []:
        if isinstance(item, dict):
            role, text = item.get("role"), item.get("text")
        else:
            role, text = getattr(item, "role", None), getattr(item, "text", None)
        text = str(text or "").strip()
        if not text:
            continue
        messages.append({"role": "assistant" if role == "ai" else "user", "content": text})
    return messages


def continue_conversation(history: Iterable[Any], message: str, context: Optional[dict] = None) -> str:
    """Return the prospect's next line, or a fixed apology when the model call fails."""
    messages = [{"role": "system", "content": build_system_prompt(context)}]
    messages.extend(_history_messages(history))
    messages.append({"role": "user", "content": (message or "").strip()})

    try:
        return request_chat_completion(
            messages,
            label="Roleplay",
            max_tokens=300,
            temperature=0.8,
        ).strip()
    except Exception as exc:
        logger.warning("roleplay_reply_failed error=%s", truncate(str(exc)))
        return FALLBACK_REPLY
