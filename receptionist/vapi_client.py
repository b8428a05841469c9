import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_FIRST_MESSAGE = "Hello! How can I help you today?"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI receptionist..."

class VapiError(Exception):
    """Raised when the Vapi API rejects a request or cannot be reached."""


class VapiClient:
    def __init__(self, api_url: str, api_key: Optional[str], session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.http = session or requests.Session()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.api_key:
            raise VapiError("VAPI_API_KEY not configured")

        url = f"{self.api_url}{path}"
        try:
            response = self.http.request(method, url, headers=self.headers, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Vapi request {method} {path} failed: {e}")
            raise VapiError(str(e)) from e

        if not response.ok:
            logger.error(f"Vapi {method} {path} returned {response.status_code}: {response.text}")
            raise VapiError(f"Vapi API error {response.status_code}: {response.text}")
        return response.json()

    def create_assistant(
        self,
        name: str,
        model: Optional[str] = None,
        voice: Optional[Any] = None,
        system_prompt: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Creates a Vapi assistant."""
        assistant_config = {
            "name": name,
            "model": model or "gpt-4o-mini",
            "voice": voice or "default",
            "firstMessage": DEFAULT_FIRST_MESSAGE,
            "systemPrompt": system_prompt or DEFAULT_SYSTEM_PROMPT,
            "tools": tools or [],
        }
        return self._request("POST", "/assistant", json=assistant_config)

    def create_outbound_call(self, assistant_id: str, phone_number: str) -> Dict[str, Any]:
        """Initiates an outbound call from the assistant to a customer."""
        logger.info(f"Creating outbound call to {phone_number} using assistant {assistant_id}")
        outbound_call_config = {
            "assistantId": assistant_id,
            "customer": {"number": phone_number},
        }
        return self._request("POST", "/call", json=outbound_call_config)

    def get_call(self, call_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/call/{call_id}")
