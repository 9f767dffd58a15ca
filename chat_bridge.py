import logging
import os
import re
import threading
from dataclasses import dataclass, field
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-3-flash-preview"
REQUEST_TIMEOUT = 60

ACTION_TAGS = {
    "FORWARD": "run",
    "BACKPROP": "run",
    "RELU": "relu",
    "SIGMOID": "sigmoid",
}
ACTION_RE = re.compile(r"\[ACTION:(" + "|".join(ACTION_TAGS) + r")\]")

SYSTEM_INSTRUCTION = (
    "You are an expert in Neural Networks and LLMs. "
    'The user is interacting with a visualizer called "Neural Lens". '
    "Answer the user's question concisely. "
    "If you want to trigger a visual action, include one of these tags at the end of your response: "
    "[ACTION:FORWARD], [ACTION:BACKPROP], [ACTION:RELU], [ACTION:SIGMOID]."
)
EMPTY_REPLY = "I'm sorry, I couldn't process that."
FALLBACK_MESSAGE = "Error connecting to the neural oracle. Please check your connection."
BUSY_MESSAGE = "The neural oracle is still answering another question. Please try again in a moment."


class ChatServiceError(RuntimeError):
    pass


def parse_actions(text):
    """Distinct control actions named by the tags in ``text``, first seen first."""
    actions = []
    for match in ACTION_RE.finditer(text or ""):
        action = ACTION_TAGS[match.group(1)]
        if action not in actions:
            actions.append(action)
    return actions


def strip_actions(text):
    return ACTION_RE.sub("", text or "")


class GeminiClient:
    def __init__(self, api_key=None, model=None, timeout=REQUEST_TIMEOUT, session=None):
        self.api_key = api_key if api_key is not None else os.environ.get("GEMINI_API_KEY", "")
        self.model = model or os.environ.get("GEMINI_MODEL") or DEFAULT_MODEL
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, system_instruction, user_text):
        if not self.api_key:
            raise ChatServiceError("GEMINI_API_KEY is not set.")

        payload = {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [{"role": "user", "parts": [{"text": user_text}]}],
        }
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        url = GEMINI_URL.format(model=self.model)
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as exc:
            raise ChatServiceError("Text generation request timed out.") from exc
        except requests.exceptions.RequestException as exc:
            raise ChatServiceError(f"Text generation request failed: {exc}") from exc
        except ValueError as exc:
            raise ChatServiceError("Text generation returned invalid JSON.") from exc

        return extract_text(data)


def extract_text(data):
    if not isinstance(data, dict):
        raise ChatServiceError("Unexpected text generation payload.")
    if data.get("error"):
        raise ChatServiceError(f"Text generation error: {data['error']}")
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ChatServiceError("Unexpected text generation payload.")
    pieces = []
    for candidate in candidates:
        if not isinstance(candidate, dict):
            raise ChatServiceError("Unexpected text generation candidate.")
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise ChatServiceError("Unexpected text generation content.")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise ChatServiceError("Unexpected text generation content.")
        for part in parts:
            if not isinstance(part, dict):
                raise ChatServiceError("Unexpected text generation part.")
            pieces.append(str(part.get("text", "")))
        if pieces:
            break
    return "".join(pieces).strip()


@dataclass
class ChatReply:
    text: str
    actions: List[str] = field(default_factory=list)
    failed: bool = False


class ChatBridge:
    """Forwards questions to a text generator and extracts control actions.

    ``client`` is anything with ``generate(system_instruction, user_text)``.
    Only one request may be in flight; an overlapping ask gets a busy reply
    and never reaches the client.
    """

    def __init__(self, client, system_instruction=SYSTEM_INSTRUCTION):
        self.client = client
        self.system_instruction = system_instruction
        self._lock = threading.Lock()

    @property
    def busy(self):
        return self._lock.locked()

    def ask(self, user_text) -> Optional[ChatReply]:
        query = (user_text or "").strip()
        if not query:
            return None
        if not self._lock.acquire(blocking=False):
            logger.info("Chat request refused; another request is pending.")
            return ChatReply(text=BUSY_MESSAGE, failed=True)
        try:
            raw = self.client.generate(self.system_instruction, query)
        except ChatServiceError as exc:
            logger.warning("Chat request failed: %s", exc)
            return ChatReply(text=FALLBACK_MESSAGE, failed=True)
        except Exception:
            logger.exception("Chat client raised an unexpected error.")
            return ChatReply(text=FALLBACK_MESSAGE, failed=True)
        finally:
            self._lock.release()

        raw = raw or EMPTY_REPLY
        return ChatReply(text=strip_actions(raw), actions=parse_actions(raw))
