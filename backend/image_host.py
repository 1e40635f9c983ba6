"""
Client for the external image hosting service used for menu pictures.
"""
import logging
import os
from typing import Dict, Optional

import requests

from errors import UpstreamFailure

logger = logging.getLogger(__name__)


class ImageHost:
    """Thin HTTP client: POST {base}/images to upload, DELETE {base}/images/{id} to destroy."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = (base_url if base_url is not None else os.getenv("IMAGE_HOST_URL", "")).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("IMAGE_HOST_API_KEY")
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def upload(self, filename: str, content: bytes, content_type: str = "application/octet-stream") -> Dict[str, str]:
        if not self.is_configured():
            raise UpstreamFailure("Image hosting is not configured")
        try:
            resp = self.session.post(
                f"{self.base_url}/images",
                files={"file": (filename, content, content_type)},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Image upload failed: {e}")
            raise UpstreamFailure("Image upload failed") from e

        if not resp.ok:
            logger.error(f"Image upload rejected ({resp.status_code}): {resp.text[:200]}")
            raise UpstreamFailure("Image upload failed")

        payload = resp.json()
        image_id = payload.get("id") or payload.get("public_id")
        url = payload.get("url") or payload.get("secure_url")
        if not image_id or not url:
            raise UpstreamFailure("Image host returned an incomplete response")
        return {"id": str(image_id), "url": url}

    def destroy(self, image_id: str) -> None:
        if not self.is_configured():
            logger.info(f"Image hosting not configured, nothing to release for {image_id}")
            return
        try:
            resp = self.session.delete(
                f"{self.base_url}/images/{image_id}",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamFailure(f"Could not release image {image_id}") from e
        if not resp.ok and resp.status_code != 404:
            raise UpstreamFailure(f"Could not release image {image_id} ({resp.status_code})")


image_host = ImageHost()
