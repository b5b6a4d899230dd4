"""
Client for the hosted ``interview-ai`` function.
"""
import logging
from typing import Dict, Any

import requests

from ...config import LLM_TIMEOUT
from ...interview.capabilities import InterviewAIClient
from ...interview.errors import RateLimited, PaymentRequired

logger = logging.getLogger("function_client")


class EdgeFunctionClient(InterviewAIClient):
    """POSTs ``{"action": ...}`` bodies to the hosted function and returns its JSON."""

    def __init__(self, url: str, api_key: str, timeout: int = LLM_TIMEOUT,
                 session: requests.Session = None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.http = session or requests.Session()

    def invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
            "Content-Type": "application/json",
        }
        logger.debug(f"Invoking {self.url} action={body.get('action')}")
        resp = self.http.post(self.url, headers=headers, json=body, timeout=self.timeout)

        if resp.status_code == 429:
            raise RateLimited(f"interview-ai returned 429: {resp.text}")
        if resp.status_code == 402:
            raise PaymentRequired(f"interview-ai returned 402: {resp.text}")
        if resp.status_code >= 400:
            raise RuntimeError(f"interview-ai error {resp.status_code}: {resp.text}")

        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"interview-ai returned a non-object response: {data!r}")
        if "error" in data and "result" not in data:
            raise RuntimeError(f"interview-ai error: {data['error']}")
        return data
