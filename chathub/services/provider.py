"""
HTTP client for the Evolution API messaging provider.
"""
from typing import Any, Dict, List, Optional

import httpx

from chathub.core.errors import ProviderError
from chathub.core.logging import get_logger

logger = get_logger(__name__)


class EvolutionClient:
    """
    Thin wrapper over the provider REST API.

    Every request carries the ``apikey`` header. Failures are logged and
    raised as ``ProviderError``, except ``connection_state`` which reports
    ``"unknown"`` instead.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={"apikey": self.api_key},
            timeout=self.timeout,
            transport=self.transport,
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            with self._client() as client:
                response = client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(
                "Provider request failed",
                extra={"extra_data": {"method": method, "path": path, "error": str(exc)}},
            )
            raise ProviderError(str(exc)) from exc

        if response.status_code >= 400:
            detail = response.text or f"HTTP {response.status_code}"
            logger.error(
                "Provider returned an error",
                extra={"extra_data": {"method": method, "path": path, "status": response.status_code}},
            )
            raise ProviderError(detail, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError("Invalid JSON from provider", status_code=response.status_code) from exc

    def fetch_instances(self) -> List[Dict[str, Any]]:
        data = self._request("GET", "/instance/fetchInstances")
        if isinstance(data, list):
            # Items are either the instance itself or {"instance": {...}}
            return [item.get("instance", item) if isinstance(item, dict) else item for item in data]
        return data or []

    def connection_state(self, name: str) -> str:
        try:
            data = self._request("GET", f"/instance/connectionState/{name}") or {}
        except ProviderError:
            return "unknown"
        instance = data.get("instance") if isinstance(data.get("instance"), dict) else {}
        return instance.get("state") or data.get("state") or "unknown"

    def create_instance(self, name: str) -> Dict[str, Any]:
        payload = {
            "instanceName": name,
            "qrcode": True,
            "integration": "WHATSAPP-BAILEYS",
        }
        return self._request("POST", "/instance/create", json=payload) or {}

    def delete_instance(self, name: str) -> None:
        self._request("DELETE", f"/instance/{name}")

    def get_qrcode(self, name: str) -> Dict[str, Any]:
        return self._request("GET", f"/instance/connect/{name}") or {}

    def get_base64_from_media_message(self, message_id: str) -> Dict[str, Any]:
        data = self._request("GET", f"/chat/getBase64FromMediaMessage/{message_id}")
        if not isinstance(data, dict) or not isinstance(data.get("base64"), str) or not data["base64"]:
            raise ProviderError("No base64 content received")
        return data
