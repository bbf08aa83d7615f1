from __future__ import annotations

import json
import os
from typing import Any

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI


DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TRANSCRIBE_MODEL = "whisper-1"
DEFAULT_TIMEOUT_SECONDS = 60.0
MAX_ERROR_CHARS = 1200


def truncate(text: str, max_chars: int = MAX_ERROR_CHARS) -> str:
    value = (text or "").strip()
    if len(value) <= max_chars:
        return value
    return value[: max_chars - 3] + "..."


def _get_api_key() -> str:
    api_key = os.getenv("LLM_API_KEY", "").strip()
    if not api_key:
        raise RuntimeError(
            'Missing LLM_API_KEY. Set it before requesting pitch analysis (example: export LLM_API_KEY="YOUR_KEY_HERE").'
        )
    return api_key


def _build_client() -> OpenAI:
    base_url = os.getenv("LLM_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL
    timeout = float(os.getenv("LLM_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))
    return OpenAI(base_url=base_url, api_key=_get_api_key(), timeout=timeout)


def get_model() -> str:
    return os.getenv("LLM_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL


def _extract_content(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts: list[str] = []
        for item in value:
            if isinstance(item, dict):
                text = item.get("text")
                if text:
                    parts.append(str(text))
        return "\n".join(parts).strip()
    return str(value or "").strip()


def _status_message(exc: APIStatusError) -> str:
    return (getattr(exc, "message", "") or str(exc)).lower()


def _unsupported_response_format(exc: APIStatusError) -> bool:
    message = _status_message(exc)
    return "response_format" in message or "json_object" in message


def _unsupported_temperature(exc: APIStatusError) -> bool:
    message = _status_message(exc)
    return "temperature" in message and "default (1)" in message


def _status_error(label: str, exc: APIStatusError) -> RuntimeError:
    status_code = getattr(exc, "status_code", None)
    detail = getattr(exc, "message", None) or str(exc)
    if status_code is not None:
        return RuntimeError(f"{label} request failed ({status_code}): {detail}")
    return RuntimeError(f"{label} request failed: {detail}")


def request_chat_completion(
    messages: list[dict],
    *,
    label: str = "LLM",
    max_tokens: int = 1200,
    temperature: float | None = None,
    json_mode: bool = False,
) -> str:
    """Send one chat-completions request and return the reply text.

    Providers that reject ``response_format`` or a non-default ``temperature``
    get the same request again without those parameters. Any other provider
    failure is raised as ``RuntimeError``.
    """
    client = _build_client()
    base_kwargs: dict[str, Any] = {
        "model": get_model(),
        "messages": messages,
        "max_tokens": max_tokens,
    }
    if temperature is not None:
        base_kwargs["temperature"] = temperature
    if json_mode:
        base_kwargs["response_format"] = {"type": "json_object"}

    attempts = [
        dict(base_kwargs),
        {k: v for k, v in base_kwargs.items() if k != "temperature"},
        {k: v for k, v in base_kwargs.items() if k != "response_format"},
        {k: v for k, v in base_kwargs.items() if k not in {"temperature", "response_format"}},
    ]
    seen_signatures: set[str] = set()
    last_status_error: APIStatusError | None = None

    for kwargs in attempts:
        signature = json.dumps(sorted(kwargs.keys()))
        if signature in seen_signatures:
            continue
        seen_signatures.add(signature)

        try:
            response = client.chat.completions.create(**kwargs)
            choice = response.choices[0] if response.choices else None
            if choice is None:
                raise RuntimeError(f"{label} response did not contain choices.")
            content = _extract_content(choice.message.content)
            if not content:
                raise RuntimeError(f"{label} response content is empty.")
            return content
        except APIStatusError as exc:
            last_status_error = exc
            if _unsupported_response_format(exc) or _unsupported_temperature(exc):
                continue
            raise _status_error(label, exc) from exc
        except APITimeoutError as exc:
            raise RuntimeError(f"{label} request timed out.") from exc
        except APIConnectionError as exc:
            raise RuntimeError(f"Failed to connect to LLM provider: {exc}") from exc
        except RuntimeError:
            raise
        except Exception as exc:
            raise RuntimeError(f"Unexpected {label} error: {exc}") from exc

    if last_status_error is not None:
        raise _status_error(label, last_status_error)
    raise RuntimeError(f"{label} request failed before receiving a response.")


def transcribe_audio(audio_bytes: bytes, filename: str, content_type: str | None = None) -> str:
    if not audio_bytes:
        raise ValueError("Audio payload is empty.")

    client = _build_client()
    model = os.getenv("LLM_TRANSCRIBE_MODEL", DEFAULT_TRANSCRIBE_MODEL).strip() or DEFAULT_TRANSCRIBE_MODEL
    upload = (filename or "pitch.webm", audio_bytes, content_type or "application/octet-stream")

    try:
        response = client.audio.transcriptions.create(model=model, file=upload)
    except APIStatusError as exc:
        raise _status_error("Transcription", exc) from exc
    except APITimeoutError as exc:
        raise RuntimeError("Transcription request timed out.") from exc
    except APIConnectionError as exc:
        raise RuntimeError(f"Failed to connect to LLM provider: {exc}") from exc

    text = _extract_content(getattr(response, "text", response))
    if not text.strip():
        raise RuntimeError("Transcription returned no text.")
    return text.strip()
