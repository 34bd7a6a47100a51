import base64
import json
import os
import re
import urllib.request
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Protocol

from huggingface_hub import InferenceClient
from abc import ABC, abstractmethod

from chat_ledger.core.errors import ClassifierMalformed, ClassifierUnavailable

logger = logging.getLogger(__name__)

_OLLAMA_URL = "http://localhost:11434/api/chat"
_OPENAI_URL = "https://api.openai.com/v1/chat/completions"
_DEFAULT_TIMEOUT = 30.0

INTENTS = (
    "ADD_SPENDING",
    "ADD_INCOME",
    "GET_REPORT",
    "DELETE_TRANSACTION",
    "UPDATE_TRANSACTION",
)
UNKNOWN = "UNKNOWN"


class LLMProvider(Protocol):
    """Anything that can answer a chat-completion style message list."""

    def generate(self, messages: List[dict]) -> str:
        """Return the reply text for ``messages``."""


@dataclass
class LLMClient:
    """Thin wrapper so tasks never talk to a provider directly."""
    provider: LLMProvider | None = None

    def __post_init__(self) -> None:
        if self.provider is None:
            self.provider = get_provider_from_env()

    def chat(self, messages: List[dict]) -> str:
        return self.provider.generate(messages)


# -----------------------------------------------------------------------------
# Hugging Face Inference API provider
# -----------------------------------------------------------------------------

@dataclass
class HuggingFaceProvider:
    model: str
    token: str | None = None
    timeout: float = _DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        self._client = InferenceClient(provider="cerebras", api_key=self.token, timeout=self.timeout)

    def generate(self, messages: List[dict]) -> str:
        out = self._client.chat_completion(messages=messages, model=self.model, temperature=0.2)
        return out.choices[0].message.content.strip()


# -----------------------------------------------------------------------------
# OpenAI Chat Completions provider
# -----------------------------------------------------------------------------

@dataclass
class OpenAIProvider:
    model: str
    api_key: str
    timeout: float = _DEFAULT_TIMEOUT

    def generate(self, messages: List[dict]) -> str:
        payload = {"model": self.model, "messages": messages, "temperature": 0.2}
        data = json.dumps(payload).encode()
        req = urllib.request.Request(_OPENAI_URL, data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("Authorization", f"Bearer {self.api_key}")
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            resp_data = json.load(resp)
        return resp_data["choices"][0]["message"]["content"].strip()


# -----------------------------------------------------------------------------
# Ollama provider
# -----------------------------------------------------------------------------

@dataclass
class OllamaProvider:
    model: str
    url: str = _OLLAMA_URL
    timeout: float = _DEFAULT_TIMEOUT

    def _post(self, payload: dict) -> dict:
        """POST ``payload`` to the chat endpoint and decode the JSON reply."""
        data = json.dumps(payload).encode()
        logger.debug("Ollama request to %s (model %s)", self.url, payload.get("model"))
        req = urllib.request.Request(self.url, data=data, method="POST")
        req.add_header("Content-Type", "application/json")

        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            raw = resp.read().decode()
            logger.debug("Ollama reply: %s", raw[:200])
            return json.loads(raw)

    def generate(self, messages: List[dict]) -> str:
        payload = {
            "model": self.model,
            "messages": [_to_ollama_message(m) for m in messages],
            "stream": False,
        }
        resp_data = self._post(payload)

        # non-streaming replies carry the text either directly or under message.content
        msg = resp_data.get("message", "")
        if isinstance(msg, dict):
            msg = msg.get("content", "")
        if not isinstance(msg, str):
            raise RuntimeError(f"Unexpected Ollama response format: {resp_data}")
        return msg.strip()


def _to_ollama_message(message: dict) -> dict:
    """Flatten OpenAI-style multi-part content into Ollama's text + images."""
    content = message.get("content")
    if isinstance(content, str):
        return message
    texts, images = [], []
    for part in content or []:
        if part.get("type") == "text":
            texts.append(part.get("text", ""))
        elif part.get("type") == "image_url":
            url = part.get("image_url", {}).get("url", "")
            images.append(url.split(",", 1)[-1])
    out = {"role": message.get("role", "user"), "content": "\n".join(texts)}
    if images:
        out["images"] = images
    return out


# -----------------------------------------------------------------------------
# Classification tasks
# -----------------------------------------------------------------------------

def strip_code_fences(text: str) -> str:
    return re.sub(r"```(?:json)?", "", text, flags=re.IGNORECASE).strip()


def parse_json_reply(text: str) -> dict:
    try:
        parsed = json.loads(strip_code_fences(text))
    except (TypeError, ValueError) as exc:
        raise ClassifierMalformed(f"Classifier returned non-JSON content: {text[:80]!r}") from exc
    if not isinstance(parsed, dict):
        raise ClassifierMalformed("Classifier returned JSON that is not an object")
    return parsed


class BaseTask(ABC):
    """One classifier job: the prompt it sends and how the reply is read."""

    @abstractmethod
    def build_messages(self, *args) -> List[dict]:
        """Messages to send for this job."""

    def post_process(self, response: str) -> dict:
        return parse_json_reply(response)


class IntentTask(BaseTask):
    """Turns a free-text chat message into ``{intent, payload}``."""

    def build_messages(self, text: str, today: date) -> List[dict]:
        return [
            {"role": "system", "content": INTENT_PROMPT.format(today=today.isoformat())},
            {"role": "user", "content": text},
        ]

    def post_process(self, response: str) -> dict:
        parsed = parse_json_reply(response)
        intent = parsed.get("intent")
        if intent not in INTENTS:
            return {"intent": UNKNOWN, "payload": {}}
        payload = parsed.get("payload")
        if not isinstance(payload, dict):
            raise ClassifierMalformed(f"Payload for {intent} is not an object")
        return {"intent": intent, "payload": payload}


class CategorizeTask(BaseTask):
    def build_messages(self, description: str, categories: Iterable[str]) -> List[dict]:
        prompt = CATEGORIZE_PROMPT.format(
            categories=", ".join(categories),
            description=description,
        )
        return [{"role": "user", "content": prompt}]


class ReceiptTask(BaseTask):
    def build_messages(self, image: bytes, mime_type: str, today: date) -> List[dict]:
        encoded = base64.b64encode(image).decode("ascii")
        return [
            {"role": "system", "content": RECEIPT_PROMPT.format(today=today.isoformat())},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Read this receipt image and output the command JSON."},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                ],
            },
        ]

    def post_process(self, response: str) -> dict:
        parsed = parse_json_reply(response)
        try:
            confidence = float(parsed.get("confidence") or 0)
        except (TypeError, ValueError):
            confidence = 0.0
        text = str(parsed.get("text") or "").strip()
        if not text:
            return {"text": RECEIPT_FALLBACK, "confidence": 0.0}
        return {"text": text.splitlines()[0], "confidence": confidence}


@dataclass
class Classifier:
    """
    Runs classification tasks against an LLM. A failing call is retried once;
    a second failure raises :class:`ClassifierUnavailable`. Replies that are
    not the expected JSON raise :class:`ClassifierMalformed`.
    """
    client: LLMClient = field(default_factory=LLMClient)
    retries: int = 1

    def _run(self, task: BaseTask, *args) -> dict:
        messages = task.build_messages(*args)
        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                reply = self.client.chat(messages)
            except Exception as exc:  # providers raise transport-specific errors
                last_error = exc
                logger.warning("Classifier call failed (attempt %d): %s", attempt + 1, exc)
                continue
            return task.post_process(reply)
        raise ClassifierUnavailable(f"Classifier unavailable: {last_error}")

    def parse_message(self, text: str, today: date) -> dict:
        """Return ``{intent, payload}``; never raises."""
        if not text or not text.strip():
            return {"intent": UNKNOWN, "payload": {}}
        try:
            result = self._run(IntentTask(), text, today)
        except (ClassifierUnavailable, ClassifierMalformed) as exc:
            logger.warning("Falling back to UNKNOWN intent: %s", exc)
            return {"intent": UNKNOWN, "payload": {}}
        logger.info("Interpreted message as %s", result["intent"])
        return result

    def categorize(self, description: str, categories: Iterable[str]) -> dict:
        return self._run(CategorizeTask(), description, list(categories))

    def read_receipt(self, image: bytes, mime_type: str, today: date) -> dict:
        return self._run(ReceiptTask(), image, mime_type, today)


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

INTENT_PROMPT = """You are a financial message interpreter for a Telegram bot.
Your ONLY job is to understand what the user wants and translate it to JSON.

Today's date is {today} (GMT+7).
Rules for date interpretation:
- "today" = today
- "yesterday" = today - 1 day
- "last N days" = start N-1 days ago, end today
- Only respond in valid JSON, no markdown or code blocks.

Respond with ONE of these intents:

1. ADD_SPENDING: {{"intent": "ADD_SPENDING", "payload": {{"expenseName": "string", "amount": number,
   "category": "optional string", "tag": "optional string", "dateOffset": 0}}}}
2. ADD_INCOME: {{"intent": "ADD_INCOME", "payload": {{"incomeName": "string", "amount": number,
   "category": "optional string", "tag": "optional string", "dateOffset": 0}}}}
3. GET_REPORT: {{"intent": "GET_REPORT", "payload": {{"startDate": "yyyy-MM-dd", "endDate": "yyyy-MM-dd",
   "reportMessage": "short greeting message"}}}}
4. DELETE_TRANSACTION: {{"intent": "DELETE_TRANSACTION", "payload": {{"transactionId": "4-char ID"}}}}
5. UPDATE_TRANSACTION: {{"intent": "UPDATE_TRANSACTION", "payload": {{"transactionId": "4-char ID",
   "field": "category|tag|amount|note|expenseName", "newValue": "string or number"}}}}
6. UNKNOWN: {{"intent": "UNKNOWN", "payload": {{}}}}

dateOffset is 0 for today, -1 for yesterday, and so on.

Examples:
- "Nasi lengko 18000" -> ADD_SPENDING with expenseName="Nasi lengko", amount=18000
- "Spending yesterday coffee 30000" -> ADD_SPENDING, amount=30000, dateOffset=-1
- "Show last 7 days" -> GET_REPORT with start=(today-6 days), end=today
- "Delete a1b2" -> DELETE_TRANSACTION with transactionId="a1b2"
"""

CATEGORIZE_PROMPT = """You are a financial transaction categorization system.
Use only the following categories (do not create new ones):

{categories}

Special rules:
* If the transaction involves giving food, drinks, or money to someone else, categorize it as "Donation" even if it sounds like "Food and Drink".
* If the transaction mentions a specific family member (for example Dad, Mom, or a named child), always assign the category "Family".
* If the category is food-related, consider adding tags such as "Lunch", "Breakfast", "Snack". Estimate based on the type of food.

Transaction: "{description}"

Respond only in valid JSON, without code fences:
{{"category": "...", "tag": "..."}}
"""

RECEIPT_FALLBACK = "#Spending Receipt 0"

RECEIPT_PROMPT = """You generate a SINGLE text command for a Telegram finance bot from a receipt image.

Today's date is {today} (GMT+7).

Return ONLY valid JSON:
{{"text": "#Spending <expenseName> <amount>", "confidence": 0-1}}

Rules:
- text must be a single line.
- amount must be a number (no separators, no currency symbols).
- expenseName should be short (merchant name or description).
- If unsure, set confidence < 0.6 and still return a best-effort text.
- If the receipt cannot be read, return confidence 0 with text "#Spending Receipt 0".
"""


# -----------------------------------------------------------------------------
# Helper utilities
# -----------------------------------------------------------------------------

def get_provider_from_env() -> LLMProvider:
    provider = os.environ.get("CHATLEDGER_LLM_PROVIDER", "huggingface").lower()
    timeout = float(os.environ.get("CHATLEDGER_LLM_TIMEOUT", _DEFAULT_TIMEOUT))

    if provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY not set")
        model = os.environ.get("CHATLEDGER_LLM_MODEL", "gpt-4o-mini")
        return OpenAIProvider(model=model, api_key=api_key, timeout=timeout)

    if provider == "ollama":
        model = os.environ.get("CHATLEDGER_LLM_MODEL", "llava:7b")
        url = os.environ.get("OLLAMA_URL", _OLLAMA_URL)
        return OllamaProvider(model=model, url=url, timeout=timeout)

    # Default → Hugging Face
    token = os.environ.get("HF_API_TOKEN")
    model = os.environ.get("CHATLEDGER_LLM_MODEL", "Qwen/Qwen3-32B")
    return HuggingFaceProvider(model=model, token=token, timeout=timeout)
