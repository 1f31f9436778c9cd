"""Cloudinary uploader tests with a stand-in for cloudinary.uploader.upload."""

from pathlib import Path

import cloudinary.exceptions
import pytest
from structlog.testing import capture_logs

from vidtube.config import Settings
from vidtube.services.media import MediaUploader

from helpers import make_upload


def make_settings():
    return Settings(
        cloudinary_cloud_name="demo",
        cloudinary_api_key="key-123",
        cloudinary_api_secret="shh",
        cloudinary_upload_prefix="https://cloudinary.test",
    )


class RecordingUpload:
    """Mimics cloudinary.uploader.upload(file, **options)."""

    def __init__(self, response=None, error=None):
        self.response = response or {}
        self.error = error
        self.calls = []

    def __call__(self, file, **options):
        self.calls.append((file, Path(file).read_bytes(), options))
        if self.error:
            raise self.error
        return self.response


@pytest.mark.asyncio
async def test_upload_success_removes_local_file():
    fake = RecordingUpload({
        "secure_url": "https://res.cloudinary.test/demo/a.png",
        "url": "http://res.cloudinary.test/demo/a.png",
        "public_id": "a",
        "resource_type": "image",
    })
    uploader = MediaUploader(make_settings(), upload_fn=fake)
    path = make_upload(b"png-bytes")
    asset = await uploader.upload(path)

    assert asset.url == "https://res.cloudinary.test/demo/a.png"
    assert asset.public_id == "a"
    assert asset.resource_type == "image"
    assert not Path(path).exists()

    file, content, options = fake.calls[0]
    assert file == path
    assert content == b"png-bytes"
    assert options["resource_type"] == "auto"
    assert options["cloud_name"] == "demo"
    assert options["api_key"] == "key-123"
    assert options["api_secret"] == "shh"
    assert options["upload_prefix"] == "https://cloudinary.test"


@pytest.mark.asyncio
async def test_upload_falls_back_to_plain_url():
    fake = RecordingUpload({"url": "http://res.cloudinary.test/b.png"})
    asset = await MediaUploader(make_settings(), upload_fn=fake).upload(make_upload())
    assert asset.url == "http://res.cloudinary.test/b.png"


@pytest.mark.asyncio
async def test_sdk_error_returns_none_and_removes_file():
    fake = RecordingUpload(error=cloudinary.exceptions.Error("Invalid Signature shh"))
    path = make_upload()
    with capture_logs() as logs:
        assert await MediaUploader(make_settings(), upload_fn=fake).upload(path) is None
    assert not Path(path).exists()

    failed = [e for e in logs if e["event"] == "media.upload_failed"]
    assert failed[0]["error_type"] == "Error"
    assert "shh" not in repr(logs)


@pytest.mark.asyncio
async def test_missing_credentials_returns_none():
    fake = RecordingUpload(error=ValueError("Must supply api_key"))
    assert await MediaUploader(make_settings(), upload_fn=fake).upload(make_upload()) is None


@pytest.mark.asyncio
async def test_response_without_url_returns_none():
    fake = RecordingUpload({"public_id": "x"})
    assert await MediaUploader(make_settings(), upload_fn=fake).upload(make_upload()) is None


@pytest.mark.asyncio
async def test_upload_without_path_makes_no_call():
    fake = RecordingUpload()
    uploader = MediaUploader(make_settings(), upload_fn=fake)
    assert await uploader.upload(None) is None
    assert await uploader.upload("") is None
    assert fake.calls == []


@pytest.mark.asyncio
async def test_missing_local_file_returns_none(tmp_path):
    fake = RecordingUpload({"url": "http://unused"})
    uploader = MediaUploader(make_settings(), upload_fn=fake)
    assert await uploader.upload(str(tmp_path / "gone.png")) is None


def test_default_upload_fn_is_the_sdk():
    import cloudinary.uploader

    assert MediaUploader(make_settings()).upload_fn is cloudinary.uploader.upload
