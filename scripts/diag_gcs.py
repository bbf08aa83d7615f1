#!/usr/bin/env python3
import sys
import uuid
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pitchperfect.backend.gcs_utils import delete_audio, fetch_audio, get_default_bucket, upload_audio  # noqa: E402


def main() -> None:
    bucket = get_default_bucket()
    payload = f"gcs-diag-{uuid.uuid4().hex}".encode("utf-8")
    filename = f"diag {uuid.uuid4().hex}.txt"

    url = upload_audio(payload, filename, "text/plain")
    print(f"Uploaded to bucket {bucket}: {url}")

    try:
        roundtrip, _, content_type = fetch_audio(url)
        print(f"Fetched {len(roundtrip)} bytes (content-type={content_type})")
        if roundtrip != payload:
            raise RuntimeError("GCS roundtrip mismatch.")
    finally:
        delete_audio(url)
        print(f"Deleted: {url}")

    print("GCS diagnostics passed.")


if __name__ == "__main__":
    main()
