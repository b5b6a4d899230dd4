"""
Gemini on Vertex AI over REST, used by the local interview AI engine.
"""
import logging
from typing import Optional, Dict, Any, List

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS

logger = logging.getLogger("llm_client")

_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class VertexRestClient:
    """
    Minimal ``generateContent`` client.

    Credentials come from a service-account file when one is given, otherwise
    from application default credentials. The token is refreshed when it
    expires or when the API answers 401.
    """

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.endpoint = (
            f"https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
            f"/locations/{location}/publishers/google/models/{model}:generateContent"
        )
        self.model = model
        self.credentials_json = credentials_json
        self.timeout = timeout
        self.http = session or requests.Session()
        self._credentials = None

    def _load_credentials(self):
        if self.credentials_json:
            return service_account.Credentials.from_service_account_file(self.credentials_json, scopes=_SCOPES)
        credentials, _ = google.auth.default(scopes=_SCOPES)
        return credentials

    def _bearer(self, force_refresh: bool = False) -> str:
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if force_refresh or not self._credentials.valid:
            self._credentials.refresh(google.auth.transport.requests.Request())
        return f"Bearer {self._credentials.token}"

    def generate_content(self,
                         prompt_text: str,
                         system_instruction: Optional[str] = None,
                         temperature: float = 0.7,
                         max_output_tokens: int = MAX_OUTPUT_TOKENS,
                         stop_sequences: Optional[List[str]] = None) -> str:
        """
        Single-turn generation.

        Returns:
            The concatenated text of the first candidate

        Raises:
            RuntimeError: the API answered with an error status
        """
        generation_config: Dict[str, Any] = {
            "temperature": float(temperature),
            "maxOutputTokens": int(max_output_tokens),
        }
        if stop_sequences:
            generation_config["stopSequences"] = list(stop_sequences)

        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt_text}]}],
            "generationConfig": generation_config,
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        resp = self._post(body)
        if resp.status_code == 401:
            logger.info("Vertex token rejected, refreshing")
            resp = self._post(body, force_refresh=True)
        if resp.status_code >= 400:
            raise RuntimeError(f"Vertex error {resp.status_code}: {resp.text}")

        text = extract_text(resp.json())
        logger.debug(f"{self.model} returned {len(text)} chars")
        return text

    def _post(self, body: Dict[str, Any], force_refresh: bool = False) -> requests.Response:
        headers = {"Authorization": self._bearer(force_refresh), "Content-Type": "application/json"}
        return self.http.post(self.endpoint, headers=headers, json=body, timeout=self.timeout)


def extract_text(payload: Dict[str, Any]) -> str:
    """Text of the first candidate. Empty when the model returned none (e.g. blocked by safety filters)."""
    candidates = payload.get("candidates") or []
    if not candidates:
        logger.warning(f"No candidates in Vertex response: {payload.get('promptFeedback')}")
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
