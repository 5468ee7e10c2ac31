import json
import logging
import re

from litellm import acompletion

from rentsplit.core.config import Settings
from rentsplit.schemas.chat import ChatMessage, ChatReply
from rentsplit.services.rules_extractor import reply_from_rules
from rentsplit.utils.rate_limiter import ApiKeyManager, RateThrottler
from rentsplit.utils.security import validate_parsed_data, validate_response_content

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a helpful assistant for a rent splitting calculator app. Your job is to:
1. Help users understand how to use the app
2. Extract information from their messages to fill out the form
3. Provide friendly, clear responses

CRITICAL: Respond with ONLY valid JSON (no markdown, no code blocks, no extra text) using this EXACT structure:
{
  "response": "Your natural language response. If you found data to extract, mention what you found and ask if they want you to fill it in.",
  "data": {
    "totalRent": number (if mentioned, e.g. 2000),
    "utilities": number (if mentioned, e.g. 300),
    "roommates": [{"name": "string", "income": number (optional), "roomSize": number (optional)}],
    "customExpenses": [{"name": "string", "amount": number}],
    "removeRoommates": ["name of a roommate to remove"],
    "removeCustomExpenses": ["name of an expense to remove"],
    "currency": "3-letter currency code (if mentioned)",
    "useRoomSizeSplit": boolean (true if room size mentioned, false if income mentioned)
  }
}

Rules:
- Return ONLY the JSON object, nothing else.
- If no data is extracted, include "data": {}.
- Income is annual salary (e.g. 60000 for $60k). Convert monthly or weekly figures to annual.
- Room size is in square feet.
- Never invent names. Only use names the user gave you.
- Be conversational in the "response" field and clearly list what you found.
"""

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_RESPONSE_OBJECT_RE = re.compile(r"\{[\s\S]*\"response\"[\s\S]*\}")


class ChatUnavailableError(RuntimeError):
    pass


class ChatProviderError(RuntimeError):
    pass


class ChatThrottledError(RuntimeError):
    def __init__(self, wait_seconds: float):
        super().__init__(f"Token budget exhausted, retry in {wait_seconds:.0f}s")
        self.wait_seconds = wait_seconds


def parse_model_output(raw_text: str) -> tuple[str, dict | None]:
    """
    Split a model reply into (response text, data payload).

    Models do not always follow the JSON-only instruction, so fenced blocks
    and JSON embedded in prose are both accepted. Anything unparseable is
    treated as plain text with no data.
    """
    text = (raw_text or "").strip()
    candidate = text

    fenced = _FENCED_JSON_RE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    embedded = _RESPONSE_OBJECT_RE.search(candidate)
    if embedded:
        candidate = embedded.group(0)

    parsed = None
    for attempt in (candidate, text):
        try:
            parsed = json.loads(attempt)
            break
        except json.JSONDecodeError:
            continue

    if not isinstance(parsed, dict):
        return text, None

    content = parsed.get("response") or parsed.get("content") or text
    data = parsed.get("data")
    return str(content), data if isinstance(data, dict) else None


def build_messages(message: str, history: list[ChatMessage], current_state: dict | None = None) -> list[dict]:
    system = SYSTEM_PROMPT
    if current_state:
        system += "\nCurrent form state (JSON):\n" + json.dumps(current_state, default=str)
    return [
        {"role": "system", "content": system},
        *({"role": m.role, "content": m.content} for m in history),
        {"role": "user", "content": message},
    ]


class ChatService:
    """
    Talks to the language model and turns its reply into text plus an
    optional patch. When no key is configured or the provider call fails,
    the reply comes from the regex extractor in rules_extractor instead.
    """

    def __init__(self, settings: Settings, key_manager: ApiKeyManager, throttler: RateThrottler):
        self.settings = settings
        self.key_manager = key_manager
        self.throttler = throttler

    async def reply(
        self,
        message: str,
        history: list[ChatMessage],
        current_state: dict | None = None,
    ) -> ChatReply:
        messages = build_messages(message, history, current_state)

        estimate = self.throttler.estimate_request_tokens(messages, self.settings.llm_max_tokens)
        capacity = self.throttler.check_capacity(estimate)
        if not capacity.can_process:
            raise ChatThrottledError(capacity.wait_seconds or 0)

        try:
            return await self._ask_model(messages, estimate)
        except (ChatUnavailableError, ChatProviderError) as e:
            logger.warning(f"Answering from rules: {e}")
            currency = (current_state or {}).get("currency")
            return reply_from_rules(message, currency if isinstance(currency, str) else None)

    async def _ask_model(self, messages: list[dict], estimate: int) -> ChatReply:
        api_key = self.key_manager.get_key()
        if api_key is None:
            raise ChatUnavailableError("Chat assistant is not configured")

        try:
            response = await acompletion(
                model=self.settings.llm_model_name,
                messages=messages,
                api_key=api_key,
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_tokens,
            )
            raw_text = response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"LLM call to {self.settings.llm_model_name} failed: {e!r}")
            raise ChatProviderError("Failed to get response from AI") from e

        input_tokens = estimate - self.settings.llm_max_tokens
        output_tokens = self.throttler.estimate_tokens(raw_text)
        self.throttler.record_usage(input_tokens, output_tokens)

        content, data = parse_model_output(raw_text)
        try:
            content = validate_response_content(content)
        except ValueError as e:
            logger.warning(f"Discarding model reply: {e}")
            return ChatReply(
                content="Sorry, I couldn't produce a safe answer to that. Could you rephrase?",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

        patch = validate_parsed_data(data) if data is not None else None
        if patch is not None and patch.is_empty():
            patch = None

        return ChatReply(
            content=content or "I'm here to help!",
            patch=patch,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
