"""ACRCloud powered music recognition."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Optional

import requests

from ...config import Settings, get_settings
from ...logging import get_logger
from .base import RecognitionError, RecognitionService, ServiceConfigurationError

LOGGER = get_logger(__name__)

_IDENTIFY_PATH = "/v1/identify"
_DATA_TYPE = "audio"
_SIGNATURE_VERSION = "1"


def sign_request(access_key: str, access_secret: str, timestamp: str) -> str:
    string_to_sign = "\n".join(
        ["POST", _IDENTIFY_PATH, access_key, _DATA_TYPE, _SIGNATURE_VERSION, timestamp]
    )
    digest = hmac.new(
        access_secret.encode("ascii"),
        string_to_sign.encode("ascii"),
        digestmod=hashlib.sha1,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


class ACRCloudRecognitionService(RecognitionService):
    def __init__(
        self,
        host: Optional[str] = None,
        access_key: Optional[str] = None,
        access_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.host = host or settings.acr_host
        self.access_key = access_key or settings.acr_access_key
        self.access_secret = access_secret or settings.acr_access_secret
        self.timeout = timeout if timeout is not None else settings.request_timeout
        if not (self.host and self.access_key and self.access_secret):
            raise ServiceConfigurationError(
                "ACRCloud credentials not configured. Set EKKO_ACR_HOST, "
                "EKKO_ACR_ACCESS_KEY and EKKO_ACR_ACCESS_SECRET."
            )
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        host = self.host.rstrip("/")
        if not host.startswith(("http://", "https://")):
            host = f"https://{host}"
        return f"{host}{_IDENTIFY_PATH}"

    def recognize(self, audio: bytes) -> Optional[str]:
        timestamp = str(int(time.time()))
        fields = {
            "access_key": self.access_key,
            "sample_bytes": str(len(audio)),
            "timestamp": timestamp,
            "signature": sign_request(self.access_key, self.access_secret, timestamp),
            "data_type": _DATA_TYPE,
            "signature_version": _SIGNATURE_VERSION,
        }
        LOGGER.debug("Submitting %d bytes to %s", len(audio), self.url)
        try:
            response = self.session.post(
                self.url,
                data=fields,
                files={"sample": ("sample.wav", audio, "audio/wav")},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RecognitionError(f"ACRCloud request failed: {exc}") from exc

        if response.status_code != 200:
            raise RecognitionError(f"ACRCloud returned HTTP {response.status_code}")
        return response.text or None


__all__ = ["ACRCloudRecognitionService", "sign_request"]
