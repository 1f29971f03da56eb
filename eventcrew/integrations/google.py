import logging
import time

import requests

from eventcrew.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"


class GoogleCredentials:
    """Exchanges a long-lived refresh token for short-lived access tokens."""

    def __init__(self, client_id, client_secret, refresh_token, timeout=15):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.timeout = timeout
        self._access_token = None
        self._expires_at = 0.0

    def access_token(self):
        if self._access_token and time.monotonic() < self._expires_at - 60:
            return self._access_token
        try:
            response = requests.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
            access_token = payload["access_token"]
        except (requests.exceptions.RequestException, ValueError, KeyError) as exc:
            logger.error("Google token refresh failed: %s", exc)
            raise UpstreamUnavailable("Google authorization failed.") from exc

        self._access_token = access_token
        self._expires_at = time.monotonic() + float(payload.get("expires_in", 3600))
        return self._access_token

    def headers(self):
        return {"Authorization": f"Bearer {self.access_token()}"}
