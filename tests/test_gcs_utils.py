import httpx
import pytest

from pitchperfect.backend import gcs_utils


def test_blob_name_is_timestamped_and_sanitised():
    assert gcs_utils.build_blob_name("my pitch.webm", now_ms=1700000000000) == "1700000000000-my_pitch.webm"
    assert gcs_utils.build_blob_name("", now_ms=1) == "1-pitch.webm"


def test_public_url_round_trip():
    url = gcs_utils.build_public_url("bucket", "1-pitch.webm")
    assert url == "https://storage.googleapis.com/bucket/1-pitch.webm"
    assert gcs_utils.parse_public_url(url) == ("bucket", "1-pitch.webm")


@pytest.mark.parametrize(
    "url",
    ["https://example.com/bucket/a.webm", "https://storage.googleapis.com/bucket", "text-only"],
)
def test_parse_rejects_foreign_urls(url):
    with pytest.raises(ValueError):
        gcs_utils.parse_public_url(url)


def test_default_bucket(monkeypatch):
    monkeypatch.delenv("GCS_BUCKET_NAME", raising=False)
    assert gcs_utils.get_default_bucket() == "pitchperfectai"
    monkeypatch.setenv("GCS_BUCKET_NAME", "  other  ")
    assert gcs_utils.get_default_bucket() == "other"


class TestFetchAudio:
    URL = "https://storage.googleapis.com/pitchperfectai/1-pitch.webm"

    @pytest.fixture(autouse=True)
    def default_bucket(self, monkeypatch):
        monkeypatch.delenv("GCS_BUCKET_NAME", raising=False)

    def test_returns_bytes_name_and_type(self):
        def handler(request):
            assert str(request.url) == self.URL
            return httpx.Response(200, content=b"webm-bytes", headers={"content-type": "audio/webm"})

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            data, filename, content_type = gcs_utils.fetch_audio(self.URL, client=client)

        assert data == b"webm-bytes"
        assert filename == "1-pitch.webm"
        assert content_type == "audio/webm"

    def test_stops_reading_past_the_size_cap(self):
        produced = []

        def body():
            for _ in range(40):
                produced.append(1)
                yield b"0" * (1024 * 1024)

        def handler(request):
            return httpx.Response(200, content=body())

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ValueError, match="exceeds"):
                gcs_utils.fetch_audio(self.URL, client=client)

        assert len(produced) < 40

    @pytest.mark.parametrize(
        "url",
        [
            "http://127.0.0.1:8080/pitch.webm",
            "https://storage.googleapis.com/someone-elses-bucket/pitch.webm",
        ],
    )
    def test_rejects_urls_outside_the_bucket(self, url):
        def handler(request):
            raise AssertionError("no request expected")

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ValueError):
                gcs_utils.fetch_audio(url, client=client)

    def test_empty_body(self):
        with httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200))) as client:
            with pytest.raises(ValueError, match="empty"):
                gcs_utils.fetch_audio(self.URL, client=client)
