"""Media upload — pushes local files to Cloudinary.

Learn: Uploads go through the cloudinary SDK,
``cloudinary.uploader.upload(path, resource_type="auto")``, which signs the
request and parses the response. The SDK is synchronous, so it runs in a
worker thread the same way bcrypt hashing does.

The uploader never raises for upload problems: any SDK or file failure is
logged and reported as None, and callers decide whether that is fatal
(avatar) or not (cover image). The local temp file is removed in every
case, success or not.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import cloudinary.exceptions
import cloudinary.uploader
import structlog

from vidtube.config import Settings, settings as default_settings

logger = structlog.get_logger()

UploadFn = Callable[..., dict[str, Any]]


@dataclass(frozen=True)
class MediaAsset:
    url: str
    public_id: str = ""
    resource_type: str = ""


def discard_local(path: Optional[str]) -> None:
    """Remove a temp upload if it is still on disk."""
    if path:
        Path(path).unlink(missing_ok=True)


class MediaUploader:
    """Cloudinary uploader for avatars and cover images.

    ``upload_fn`` defaults to ``cloudinary.uploader.upload``; tests pass a
    stand-in with the same signature.
    """

    def __init__(self, settings: Optional[Settings] = None, upload_fn: Optional[UploadFn] = None):
        self.settings = settings or default_settings
        self.upload_fn = upload_fn or cloudinary.uploader.upload

    def _options(self) -> dict[str, Any]:
        return {
            "resource_type": "auto",
            "cloud_name": self.settings.cloudinary_cloud_name,
            "api_key": self.settings.cloudinary_api_key,
            "api_secret": self.settings.cloudinary_api_secret,
            "upload_prefix": self.settings.cloudinary_upload_prefix,
            "timeout": self.settings.upload_timeout_seconds,
        }

    async def upload(self, local_path: Optional[str]) -> Optional[MediaAsset]:
        """Upload a local file and return its hosted URL, or None on failure."""
        if not local_path:
            return None
        name = Path(local_path).name
        try:
            body = await asyncio.to_thread(self.upload_fn, local_path, **self._options())
            url = body.get("secure_url") or body["url"]
        except (cloudinary.exceptions.Error, OSError, ValueError, KeyError) as e:
            # Type only: SDK messages can echo request parameters
            logger.warning("media.upload_failed", file=name, error_type=type(e).__name__)
            return None
        finally:
            discard_local(local_path)

        logger.info("media.uploaded", file=name, url=url)
        return MediaAsset(
            url=url,
            public_id=body.get("public_id", ""),
            resource_type=body.get("resource_type", ""),
        )


def get_media_uploader() -> MediaUploader:
    """FastAPI dependency — overridden in tests."""
    return MediaUploader()
