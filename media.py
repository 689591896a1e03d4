"""
Media hosting (Cloudinary)

Images and documents are uploaded as binary blobs into a folder and come back
as a secure URL plus the provider's public id, which is needed to delete the
asset later.
"""

import io
import logging
from typing import Any, Dict

import cloudinary
import cloudinary.uploader
import requests
from cloudinary.exceptions import Error as CloudinaryError
from pydantic import BaseModel

from config import Settings
from errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

IMAGE_FORMATS = ["jpg", "jpeg", "png", "gif", "webp", "svg"]
DOCUMENT_FORMATS = ["pdf", "doc", "docx"]


class MediaAsset(BaseModel):
    url: str
    public_id: str


class MediaHost:
    def __init__(self, settings: Settings):
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )

    def _upload(self, data: bytes, **options: Any) -> MediaAsset:
        try:
            result = cloudinary.uploader.upload(io.BytesIO(data), **options)
        except CloudinaryError as e:
            raise UpstreamUnavailable("Media upload failed", reason=str(e)) from e
        logger.info("Uploaded %s to %s", result["public_id"], options.get("folder"))
        return MediaAsset(url=result["secure_url"], public_id=result["public_id"])

    def _destroy(self, public_id: str, resource_type: str) -> Dict[str, Any]:
        try:
            return cloudinary.uploader.destroy(public_id, resource_type=resource_type)
        except CloudinaryError as e:
            raise UpstreamUnavailable("Media delete failed", reason=str(e)) from e

    def upload_image(self, data: bytes, folder: str = "portfolio") -> MediaAsset:
        return self._upload(data, folder=folder, resource_type="image", allowed_formats=IMAGE_FORMATS)

    def upload_document(self, data: bytes, folder: str = "portfolio") -> MediaAsset:
        # raw resources are served inline by default
        return self._upload(
            data,
            folder=folder,
            resource_type="raw",
            allowed_formats=DOCUMENT_FORMATS,
            access_mode="public",
        )

    def delete_image(self, public_id: str) -> Dict[str, Any]:
        result = self._destroy(public_id, "image")
        if result.get("result") == "ok":
            return result
        # PDFs uploaded before documents got their own resource type
        return self._destroy(public_id, "raw")

    def delete_document(self, public_id: str) -> Dict[str, Any]:
        return self._destroy(public_id, "raw")

    def fetch(self, url: str) -> bytes:
        try:
            resp = requests.get(url, timeout=10)
        except requests.RequestException as e:
            raise UpstreamUnavailable("Failed to fetch media", reason=str(e)) from e
        if resp.status_code != 200:
            raise UpstreamUnavailable("Failed to fetch media", status=resp.status_code)
        return resp.content


def discard(delete, public_id: str) -> None:
    """Best-effort removal of a replaced asset; failures are logged and ignored."""
    if not public_id:
        return
    try:
        delete(public_id)
    except UpstreamUnavailable as e:
        logger.warning("Could not delete media %s: %s", public_id, e.message)
