"""
Large Language Model Integration for SheetAssist

Sends a chat conversation to an OpenAI-compatible chat-completions endpoint
(OpenRouter by default) and returns the assistant reply. Used by the answer
router when no knowledge base entry is relevant enough.

Key Features:
- Single non-streaming request per question
- Role validation before anything goes over the wire
- Human-readable GenerationError for every failure mode
- Latency metrics per request

Configuration:
- API key via OPENROUTER_API_KEY
- Endpoint via SHEETASSIST_LLM_ENDPOINT
- Model via SHEETASSIST_MODEL
- Request timeout via SHEETASSIST_LLM_TIMEOUT

Dependencies:
- requests: HTTP client for the chat-completions API

Author: Quinn Evans
"""

import os
import time
from typing import Dict, List

import requests

from knowledge import AssistError

DEFAULT_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "openai/gpt-4o-mini"
ALLOWED_ROLES = ("system", "user", "assistant")

# Generation parameters for short, factual support answers
DEFAULT_OPTIONS = {
    "temperature": 0.3,     # Low temperature keeps answers close to the facts
    "max_tokens": 512,      # Maximum tokens to generate
}


class GenerationError(AssistError):
    """Raised when the language model cannot produce a reply."""


class LLMManager:
    """
    Manages requests to the hosted language model.

    Attributes:
        api_key (str): Bearer token for the endpoint
        endpoint (str): Chat-completions URL
        model (str): Model identifier
        timeout (float): Request timeout in seconds
        session (requests.Session): Persistent HTTP session for efficiency
    """

    def __init__(self, api_key: str = None, endpoint: str = None, model: str = None,
                 timeout: float = None, session: requests.Session = None):
        self.api_key = api_key if api_key is not None else os.getenv("OPENROUTER_API_KEY", "")
        self.endpoint = endpoint or os.getenv("SHEETASSIST_LLM_ENDPOINT", DEFAULT_ENDPOINT)
        self.model = model or os.getenv("SHEETASSIST_MODEL", DEFAULT_MODEL)
        self.timeout = timeout or float(os.getenv("SHEETASSIST_LLM_TIMEOUT", "30"))
        self.session = session or requests.Session()

    # ---------------------------------------------------------------- Response Generation

    def generate(self, messages: List[Dict[str, str]]) -> str:
        """
        Generate the assistant reply for a conversation.

        Args:
            messages (list[dict]): Conversation as {"role", "content"} dicts,
                roles limited to system, user and assistant

        Returns:
            str: Reply text

        Raises:
            GenerationError: Missing API key, invalid messages, HTTP failure,
                or a response without content
        """
        if not self.api_key:
            raise GenerationError("The language model is not configured (OPENROUTER_API_KEY is unset).")
        payload_messages = self._validate_messages(messages)

        start = time.time()
        try:
            response = self.session.post(
                self.endpoint,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": payload_messages,
                    **DEFAULT_OPTIONS,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "unknown"
            raise GenerationError(f"Language model request failed with status {status}.") from exc
        except requests.RequestException as exc:
            raise GenerationError(f"Could not reach the language model: {exc}") from exc
        except ValueError as exc:
            raise GenerationError("Language model returned a malformed response.") from exc

        reply = self._extract_reply(data)
        self._log_metrics(payload_messages, start, time.time())
        return reply

    # ------------------------------------------------------------- Helpers

    def _validate_messages(self, messages) -> List[Dict[str, str]]:
        if not messages:
            raise GenerationError("At least one message is required.")
        cleaned = []
        for message in messages:
            role = message.get("role")
            content = message.get("content")
            if role not in ALLOWED_ROLES:
                raise GenerationError(f"Unsupported message role: {role!r}")
            if not isinstance(content, str) or not content.strip():
                raise GenerationError("Message content must be non-empty text.")
            cleaned.append({"role": role, "content": content})
        return cleaned

    def _extract_reply(self, data) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError("Language model returned no choices.") from exc
        if not isinstance(content, str) or not content.strip():
            raise GenerationError("Language model returned an empty reply.")
        return content.strip()

    def _log_metrics(self, messages, start_time: float, end_time: float):
        prompt_words = sum(len(message["content"].split()) for message in messages)
        print(f"LLM latency total={end_time - start_time:.2f}s | prompt_words≈{prompt_words} | model={self.model}")
