import logging
import os
import time
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

import httpx
from google.api_core.exceptions import NotFound
from google.cloud import storage

from .constants import CHUNK_SIZE, MAX_UPLOAD_BYTES
from .gcp_auth import get_gcp_credentials, get_project_id_hint


logger = logging.getLogger("uvicorn.error")
PUBLIC_HOST = "storage.googleapis.com"
DEFAULT_BUCKET = "pitchperfectai"
FETCH_TIMEOUT_SECONDS = 30.0
_storage_client: Optional[storage.Client] = None


def get_default_bucket() -> str:
    return os.getenv("GCS_BUCKET_NAME", DEFAULT_BUCKET).strip() or DEFAULT_BUCKET


def get_storage_client() -> storage.Client:
    global _storage_client
    if _storage_client is None:
        credentials = get_gcp_credentials()
        project = get_project_id_hint()
        if credentials is not None or project:
            _storage_client = storage.Client(credentials=credentials, project=project)
        else:
            _storage_client = storage.Client()
    return _storage_client


def build_blob_name(filename: str, now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    clean_name = (filename or "pitch.webm").strip().replace(" ", "_").lstrip("/")
    return f"{stamp}-{clean_name}"


def build_public_url(bucket: str, blob_name: str) -> str:
    return f"https://{PUBLIC_HOST}/{bucket}/{blob_name.lstrip('/')}"


def parse_public_url(url: str) -> Tuple[str, str]:
    parsed = urlparse(url or "")
    if parsed.netloc != PUBLIC_HOST:
        raise ValueError(f"Not a public storage URL: {url}")
    path = parsed.path.lstrip("/")
    if "/" not in path:
        raise ValueError(f"Storage URL is missing object path: {url}")
    bucket, blob_name = path.split("/", 1)
    if not bucket or not blob_name:
        raise ValueError(f"Invalid storage URL: {url}")
    return bucket, unquote(blob_name)


def upload_audio(data: bytes, filename: str, content_type: Optional[str]) -> str:
    """Store pitch audio and return its public URL."""
    bucket = get_default_bucket()
    blob_name = build_blob_name(filename)
    blob = get_storage_client().bucket(bucket).blob(blob_name)
    blob.upload_from_string(data, content_type=content_type or "application/octet-stream")
    logger.info("audio_uploaded bucket=%s blob=%s bytes=%s", bucket, blob_name, len(data))
    return build_public_url(bucket, blob_name)


def delete_audio(url: str) -> None:
    bucket, blob_name = parse_public_url(url)
    blob = get_storage_client().bucket(bucket).blob(blob_name)
    try:
        blob.delete()
    except NotFound:
        return
    except Exception:
        logger.warning("Failed deleting audio object: gs://%s/%s", bucket, blob_name, exc_info=True)


def fetch_audio(url: str, client: Optional[httpx.Client] = None) -> Tuple[bytes, str, Optional[str]]:
    """Download pitch audio from the configured bucket, returning ``(bytes, filename, content_type)``."""
    bucket, blob_name = parse_public_url(url)
    if bucket != get_default_bucket():
        raise ValueError(f"Audio URL is outside bucket {get_default_bucket()}: {url}")

    owned_client = client is None
    http = client or httpx.Client(timeout=FETCH_TIMEOUT_SECONDS)
    chunks = []
    total_bytes = 0
    try:
        with http.stream("GET", url) as response:
            response.raise_for_status()
            content_type = response.headers.get("content-type")
            for chunk in response.iter_bytes(CHUNK_SIZE):
                total_bytes += len(chunk)
                if total_bytes > MAX_UPLOAD_BYTES:
                    raise ValueError(f"Audio at URL exceeds {MAX_UPLOAD_BYTES} bytes.")
                chunks.append(chunk)
    finally:
        if owned_client:
            http.close()

    if total_bytes == 0:
        raise ValueError("Audio URL returned an empty body.")
    filename = os.path.basename(blob_name) or "pitch-audio"
    return b"".join(chunks), filename, content_type
