import base64
import json
import os
from functools import lru_cache
from typing import Optional

from google.oauth2 import service_account


STORAGE_SCOPE = "https://www.googleapis.com/auth/devstorage.read_write"


def _load_json_object(raw_json: str, source: str) -> dict:
    try:
        parsed = json.loads(raw_json)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"{source} does not contain valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise RuntimeError(f"{source} must contain a JSON object.")
    return parsed


def _service_account_info_from_env() -> Optional[dict]:
    encoded = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_B64", "").strip()
    if encoded:
        encoded += "=" * ((-len(encoded)) % 4)
        try:
            raw_json = base64.b64decode(encoded).decode("utf-8")
        except Exception as exc:
            raise RuntimeError("GOOGLE_APPLICATION_CREDENTIALS_B64 is not valid base64.") from exc
        return _load_json_object(raw_json, "GOOGLE_APPLICATION_CREDENTIALS_B64")

    inline = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON", "").strip()
    if inline:
        return _load_json_object(inline, "GOOGLE_APPLICATION_CREDENTIALS_JSON")
    return None


@lru_cache(maxsize=1)
def get_gcp_credentials() -> Optional[service_account.Credentials]:
    """Service-account credentials for the audio bucket, or None for ambient ADC."""
    info = _service_account_info_from_env()
    if info is not None:
        return service_account.Credentials.from_service_account_info(info, scopes=[STORAGE_SCOPE])

    path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    if not path:
        return None
    if not os.path.exists(path):
        raise RuntimeError(f"GOOGLE_APPLICATION_CREDENTIALS points to a missing file: {path}")
    return service_account.Credentials.from_service_account_file(path, scopes=[STORAGE_SCOPE])


def get_project_id_hint() -> Optional[str]:
    explicit = os.getenv("GCP_PROJECT_ID", "").strip()
    if explicit:
        return explicit
    credentials = get_gcp_credentials()
    return getattr(credentials, "project_id", None) if credentials is not None else None
