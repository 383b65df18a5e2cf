import base64

import requests
from flask import current_app

from ..errors import AuthenticationError, NetworkError


class GmailClient:
    """Thin wrapper over the Gmail REST API acting as the signed-in landlord."""

    def __init__(self, access_token, base_url=None, timeout=None, session=None):
        self.base_url = (base_url or "https://gmail.googleapis.com/gmail/v1").rstrip("/")
        self.timeout = timeout or 10
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}/users/me/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"Mail API request failed: {e}", url=url, method=method)

        if resp.status_code == 401:
            raise AuthenticationError("Mail access token was rejected", reason="TOKEN_EXPIRED")
        if resp.status_code >= 400:
            raise NetworkError(
                f"Mail API returned {resp.status_code}",
                url=url,
                http_status=resp.status_code,
                method=method,
            )
        return resp.json() if resp.content else {}

    def list_messages(self, query, max_results=None):
        params = {"q": query}
        if max_results:
            params["maxResults"] = max_results
        data = self._request("GET", "messages", params=params)
        return data.get("messages") or []

    def get_message(self, message_id):
        return self._request("GET", f"messages/{message_id}", params={"format": "full"})

    def send_message(self, raw_message):
        """Send an RFC 822 message given as text; returns the Gmail message resource."""
        raw = base64.urlsafe_b64encode(raw_message.encode("utf-8")).decode("ascii")
        return self._request("POST", "messages/send", json={"raw": raw})


def get_gmail_client(user):
    if user is None or not user.access_token:
        raise AuthenticationError("User is not logged in", reason="INVALID_CREDENTIALS")
    if user.is_token_expired():
        raise AuthenticationError("Mail access token has expired", reason="TOKEN_EXPIRED", user_id=user.id)
    return GmailClient(
        user.access_token,
        base_url=current_app.config.get("GMAIL_API_BASE_URL"),
        timeout=current_app.config.get("GMAIL_TIMEOUT_SECONDS"),
    )
