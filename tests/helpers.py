"""Shared test helpers: fake media host and API shortcuts."""

import os
import tempfile
from pathlib import Path

from vidtube.services.media import MediaAsset, discard_local

PASSWORD = "pw123-secret"


class FakeUploader:
    """Stands in for MediaUploader. Files whose content is b"fail" fail."""

    def __init__(self):
        self.uploaded: list[bytes] = []

    async def upload(self, local_path):
        if not local_path:
            return None
        try:
            content = Path(local_path).read_bytes()
        finally:
            discard_local(local_path)
        if content == b"fail":
            return None
        self.uploaded.append(content)
        n = len(self.uploaded)
        return MediaAsset(url=f"https://media.test/{n}.png", public_id=str(n), resource_type="image")


def make_upload(content: bytes = b"image-bytes", suffix: str = ".png") -> str:
    """Write a temp file the way the API spools multipart uploads."""
    fd, path = tempfile.mkstemp(suffix=suffix, dir=os.environ["VIDTUBE_UPLOAD_TMP_DIR"])
    with os.fdopen(fd, "wb") as fh:
        fh.write(content)
    return path


async def register_via_api(client, username="alice", email="a@x.com", full_name="Alice A",
                           password=PASSWORD, cover=None):
    files = {"avatar": ("avatar.png", b"avatar-bytes", "image/png")}
    if cover is not None:
        files["cover_image"] = ("cover.png", cover, "image/png")
    return await client.post(
        "/api/v1/users/register",
        data={"username": username, "email": email, "full_name": full_name, "password": password},
        files=files,
    )


async def login_via_api(client, username="alice", password=PASSWORD):
    r = await client.post(
        "/api/v1/users/login", json={"username": username, "password": password}
    )
    assert r.status_code == 200, r.text
    return r.json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
