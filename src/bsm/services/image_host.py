from __future__ import annotations

import logging
from dataclasses import dataclass

import cloudinary.uploader
import requests
from cloudinary.exceptions import Error as CloudinaryError

from bsm.domain.errors import ImageHostError

log = logging.getLogger("bsm.sweep")

API_BASE = "https://api.cloudinary.com/v1_1"


@dataclass(frozen=True)
class UploadedImage:
    url: str
    public_id: str


class ImageHostClient:
    """Cloudinary client: unsigned REST uploads, deletes through the SDK."""

    def __init__(
        self,
        cloud_name: str,
        upload_preset: str = "",
        api_key: str = "",
        api_secret: str = "",
        folder: str = "deliveries",
        timeout: int = 15,
    ):
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout

    def _post(self, url: str, data: dict, files: dict | None = None) -> dict:
        r = requests.post(url, data=data, files=files, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def upload(self, content: bytes, filename: str) -> UploadedImage:
        if not self.cloud_name or not self.upload_preset:
            raise ImageHostError("Image host is not configured. Set CLOUDINARY_CLOUD_NAME and CLOUDINARY_UPLOAD_PRESET.")
        url = f"{API_BASE}/{self.cloud_name}/image/upload"
        try:
            data = self._post(
                url,
                data={"upload_preset": self.upload_preset, "folder": self.folder},
                files={"file": (filename or "upload", content)},
            )
        except (requests.RequestException, ValueError) as e:
            log.warning("image_upload_failed error=%s", e)
            raise ImageHostError("Failed to upload image.") from e
        if not isinstance(data, dict):
            raise ImageHostError(f"Image host returned an unexpected response: {data!r}")

        secure_url = data.get("secure_url")
        public_id = data.get("public_id")
        if not secure_url or not public_id:
            raise ImageHostError(f"Image host response missing url or id. Raw: {data}")
        return UploadedImage(url=str(secure_url), public_id=str(public_id))

    def destroy(self, public_id: str) -> None:
        if not self.cloud_name or not self.api_key or not self.api_secret:
            raise ImageHostError("Image host credentials are not configured.")
        try:
            data = cloudinary.uploader.destroy(
                public_id,
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                invalidate=True,
            )
        except (CloudinaryError, OSError) as e:
            raise ImageHostError(f"Image delete failed for {public_id}: {e}") from e

        if not isinstance(data, dict):
            raise ImageHostError(f"Image delete failed for {public_id}: unexpected response {data!r}")
        result = data.get("result")
        # "not found" means an earlier sweep already removed it.
        if result not in ("ok", "not found"):
            raise ImageHostError(f"Image delete failed for {public_id}: {result!r}")
