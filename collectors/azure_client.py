"""Thin ARM REST client on top of ``requests`` and the Azure CLI credential.

Collectors talk to management.azure.com through ``AzureClient``; the
Resource Graph collector uses the SDK client with the same credential.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional

import requests
from azure.core.credentials import TokenCredential
from azure.identity import AzureCliCredential

ARM = "https://management.azure.com"
ARM_SCOPE = f"{ARM}/.default"

# throttled or transiently failing ARM answers worth another try
RETRYABLE = frozenset({429, 500, 502, 503, 504})
ATTEMPTS = 5
REQUEST_TIMEOUT = 60

_log = logging.getLogger(__name__)

_credential: Optional[TokenCredential] = None
_credential_guard = threading.Lock()


def get_shared_credential() -> TokenCredential:
    """The credential every collector signs in with (one ``az`` login per process)."""
    global _credential
    with _credential_guard:
        if _credential is None:
            _credential = AzureCliCredential(process_timeout=30)
        return _credential


def set_shared_credential(credential: Optional[TokenCredential]) -> None:
    global _credential
    with _credential_guard:
        _credential = credential


def _backoff(attempt: int) -> float:
    return 1.5 * attempt


class AzureClient:
    """ARM calls for one subscription scope. Not shared across threads."""

    def __init__(self, credential: TokenCredential, subscription_id: Optional[str] = None):
        self.credential = credential
        self.subscription_id = subscription_id
        self._session = requests.Session()
        self._bearer: Optional[str] = None
        self._valid_until = 0.0

    def token(self) -> str:
        # refresh a minute before expiry
        if self._bearer is None or time.time() >= self._valid_until - 60:
            issued = self.credential.get_token(ARM_SCOPE)
            self._bearer, self._valid_until = issued.token, float(issued.expires_on)
        return self._bearer

    def _request(self, method: str, url: str, *, params: Optional[Dict[str, Any]] = None,
                 body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        attempt = 0
        while True:
            attempt += 1
            response = self._session.request(
                method, url,
                headers={"Authorization": f"Bearer {self.token()}"},
                params=params, json=body, timeout=REQUEST_TIMEOUT,
            )
            if response.status_code not in RETRYABLE or attempt >= ATTEMPTS:
                break
            _log.debug("%s %s → %s (attempt %d/%d)", method, url, response.status_code, attempt, ATTEMPTS)
            time.sleep(_backoff(attempt))
        response.raise_for_status()
        return response.json() if response.content else {}

    @staticmethod
    def _params(api_version: str, extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {**(extra or {}), "api-version": api_version}

    def get(self, path: str, api_version: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", ARM + path, params=self._params(api_version, params))

    def post(self, path: str, api_version: str, body: Optional[Dict[str, Any]] = None,
             params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("POST", ARM + path, params=self._params(api_version, params), body=body or {})

    def get_all(self, path: str, api_version: str, *, max_pages: int = 10) -> List[Dict[str, Any]]:
        """Collect ``value`` across pages; ``nextLink`` already carries the query string."""
        page = self.get(path, api_version)
        items: List[Dict[str, Any]] = list(page.get("value") or [])
        for _ in range(max_pages - 1):
            link = page.get("nextLink")
            if not link:
                break
            page = self._request("GET", link)
            items.extend(page.get("value") or [])
        return items


def build_client(subscription_id: Optional[str] = None,
                 credential: Optional[TokenCredential] = None) -> AzureClient:
    return AzureClient(credential or get_shared_credential(), subscription_id=subscription_id)
