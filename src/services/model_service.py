"""
Model Service

Client for the Generative Language ``generateContent`` REST endpoint. The
conversation history is sent as a ``contents`` array of
``{role, parts: [{text}]}`` entries; the first text part of the first
candidate is the reply.
"""

from typing import Any, Dict, List, Optional, Sequence

import httpx

from src.config.settings import Settings
from src.models.conversation import Turn
from src.services.base_service import BaseService
from src.services.exceptions import ConfigurationError, ModelError, RateLimitError, ValidationError


class GeminiClient(BaseService):
    """Async client for ``models/{model}:generateContent``"""

    def __init__(
            self,
            api_key: str,
            model: str,
            api_url: str = "https://generativelanguage.googleapis.com/v1beta",
            timeout_seconds: float = 30,
            system_prompt: str = "",
            http_client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__()
        self.api_key = api_key
        self.model = model
        self.endpoint = f"{api_url.rstrip('/')}/models/{model}:generateContent"
        self.timeout_seconds = timeout_seconds
        self.system_prompt = system_prompt

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json"}
        )

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "GeminiClient":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            api_url=settings.GEMINI_API_URL,
            timeout_seconds=settings.MODEL_TIMEOUT_SECONDS,
            system_prompt=settings.SYSTEM_PROMPT,
            http_client=http_client
        )

    def build_request(self, history: Sequence[Turn]) -> Dict[str, Any]:
        """
        Build the request body for a conversation history

        Consecutive turns with the same role are merged, since the API
        expects the roles to alternate.
        """
        contents: List[Dict[str, Any]] = []
        for turn in history:
            text = turn.content.strip()
            if not text:
                continue
            role = turn.role.to_provider()
            if contents and contents[-1]["role"] == role:
                contents[-1]["parts"][0]["text"] += f"\n\n{text}"
            else:
                contents.append({"role": role, "parts": [{"text": text}]})

        body: Dict[str, Any] = {"contents": contents}
        if self.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": self.system_prompt}]}
        return body

    async def generate(self, history: Sequence[Turn]) -> Optional[str]:
        """
        Ask the model to continue the conversation

        Args:
            history: Turns oldest first, normally ending with the user's message

        Returns:
            Reply text, or None when the response carries no candidate text

        Raises:
            ConfigurationError: If no API key is configured
            ValidationError: If the history has no content
            RateLimitError: If the API answers with HTTP 429
            ModelError: On any other HTTP, timeout or decoding failure
        """
        if not self.api_key:
            raise ConfigurationError("Generative Language API key is not configured", config_key="GEMINI_API_KEY")

        body = self.build_request(history)
        if not body["contents"]:
            raise ValidationError("Conversation history is empty", field="history")

        try:
            response = await self.http_client.post(
                self.endpoint,
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout_seconds
            )
        except httpx.TimeoutException as e:
            raise ModelError(
                f"Model request timed out after {self.timeout_seconds}s",
                model_name=self.model,
                original_error=e
            )
        except httpx.HTTPError as e:
            raise ModelError(f"Model request failed: {e}", model_name=self.model, original_error=e)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Model API rate limit exceeded",
                service_name="gemini",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )

        if not response.is_success:
            raise ModelError(
                f"Model API error: {response.status_code} {self._error_message(response)}".strip(),
                model_name=self.model,
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ModelError("Model API returned invalid JSON", model_name=self.model, original_error=e)

        reply = self.extract_reply(data)
        if reply is None:
            self.logger.warning(
                "Model returned no candidate text",
                model=self.model,
                block_reason=(data.get("promptFeedback") or {}).get("blockReason") if isinstance(data, dict) else None
            )
        return reply

    @staticmethod
    def extract_reply(data: Any) -> Optional[str]:
        """First text part of the first candidate, if any"""
        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return None
        content = candidates[0].get("content")
        if not isinstance(content, dict):
            return None
        parts = content.get("parts")
        if not isinstance(parts, list):
            return None
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"].strip():
                return part["text"]
        return None

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json().get("error") or {}
        except (ValueError, AttributeError):
            return ""
        return error.get("message", "") if isinstance(error, dict) else ""

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
