"""
Validation and sanitisation for chat input and LLM output.

Nothing here touches the allocation engine: chat messages are checked before
they reach the model, and whatever the model extracts is narrowed to a
CalculationPatch with sane ranges before it can be merged into form data.
"""
import math
import re
from decimal import Decimal

from rentsplit.schemas.chat import CalculationPatch, ChatMessage, InjectionCheck, PatchExpense, PatchRoommate
from rentsplit.utils.currency_utils import SUPPORTED_CURRENCIES

MAX_MESSAGE_LENGTH = 2000
MAX_CONVERSATION_HISTORY_LENGTH = 50
MAX_NAME_LENGTH = 100

PLACEHOLDER_NAMES = {"you", "your name", "unknown", "user", "me", "i", "system", "assistant"}

PROMPT_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(previous|all|the)\s+(instructions?|prompts?|rules?)", re.I),
    re.compile(r"forget\s+(previous|all|the)\s+(instructions?|prompts?|rules?)", re.I),
    re.compile(r"disregard\s+(previous|all|the)\s+(instructions?|prompts?|rules?)", re.I),
    re.compile(r"you\s+are\s+now\s+(a|an)\s+", re.I),
    re.compile(r"act\s+as\s+(if\s+you\s+are\s+)?(a|an)\s+", re.I),
    re.compile(r"pretend\s+(to\s+be|you\s+are)\s+", re.I),
    re.compile(r"\bsystem\s*:", re.I),
    re.compile(r"\[INST\]", re.I),
    re.compile(r"<\|im_start\|>", re.I),
    re.compile(r"<\|im_end\|>", re.I),
    re.compile(r"###\s*(system|instruction|prompt)\s*:", re.I),
    re.compile(r"override\s+(system|instructions?|prompts?)", re.I),
    re.compile(r"jailbreak", re.I),
    re.compile(r"new\s+(instructions?|prompts?|rules?)", re.I),
    re.compile(r"output\s+(the|your)\s+(system|full|entire)\s+(prompt|instructions?)", re.I),
    re.compile(r"reveal\s+(the|your)\s+(system|full|entire)\s+(prompt|instructions?)", re.I),
    re.compile(r"show\s+(me\s+)?(the|your)\s+(system|full|entire|original)\s+(prompt|instructions?)", re.I),
    re.compile(r"what\s+(are|were)\s+(your|the)\s+(system|original|initial)\s+(instructions?|prompts?)", re.I),
    re.compile(r"repeat\s+(the|your|back)\s+(system|original|initial)\s+(instructions?|prompts?)", re.I),
]

_HIGH_CONFIDENCE_WORDS = ("ignore", "forget", "override", "jailbreak", "reveal", "output")
_MEDIUM_CONFIDENCE_WORDS = ("you\\s+are\\s+now", "act\\s+as", "system\\s*:")

SUSPICIOUS_PATTERNS = [
    re.compile(r"<script[\s\S]*?>[\s\S]*?</script>", re.I),
    re.compile(r"javascript:", re.I),
    re.compile(r"on\w+\s*=", re.I),
    re.compile(r"data:text/html", re.I),
    re.compile(r"vbscript:", re.I),
    re.compile(r"<iframe", re.I),
    re.compile(r"<object", re.I),
    re.compile(r"<embed", re.I),
]

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_input(text) -> str:
    """Strip control characters (newlines and tabs survive) and surrounding whitespace."""
    if not isinstance(text, str):
        return ""
    return _CONTROL_CHARS.sub("", text).strip()


def validate_message_length(message: str) -> str | None:
    """Returns an error message, or None when the length is acceptable."""
    if len(message) > MAX_MESSAGE_LENGTH:
        return f"Message is too long. Maximum length is {MAX_MESSAGE_LENGTH} characters."
    if len(message) == 0:
        return "Message cannot be empty."
    return None


def detect_prompt_injection(message: str) -> InjectionCheck:
    text = sanitize_input(message)
    match_count = 0
    confidence = "low"
    matched: list[str] = []

    for pattern in PROMPT_INJECTION_PATTERNS:
        if pattern.search(text):
            match_count += 1
            matched.append(pattern.pattern)
            if any(word in pattern.pattern for word in _HIGH_CONFIDENCE_WORDS):
                confidence = "high"
            elif any(word in pattern.pattern for word in _MEDIUM_CONFIDENCE_WORDS) and confidence != "high":
                confidence = "medium"

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(text):
            match_count += 1
            if confidence == "low":
                confidence = "medium"

    if match_count >= 3:
        confidence = "high"
    elif match_count >= 2 and confidence == "low":
        confidence = "medium"

    return InjectionCheck(
        is_injection=match_count > 0,
        confidence=confidence,
        reason=(
            f"Detected {match_count} suspicious pattern(s): {', '.join(matched[:3])}"
            if match_count else None
        ),
    )


def validate_conversation_history(history: list) -> list[ChatMessage]:
    """
    Keep only well-formed user/assistant turns. Messages with other roles,
    empty or oversized content, or a high-confidence injection are dropped.
    Raises ValueError when the history itself is unusable.
    """
    if not isinstance(history, list):
        raise ValueError("Conversation history must be a list")
    if len(history) > MAX_CONVERSATION_HISTORY_LENGTH:
        raise ValueError(
            f"Conversation history is too long. Maximum {MAX_CONVERSATION_HISTORY_LENGTH} messages allowed."
        )

    cleaned = []
    for msg in history:
        if isinstance(msg, ChatMessage):
            role, content = msg.role, msg.content
        elif isinstance(msg, dict):
            role, content = msg.get("role"), msg.get("content")
        else:
            continue

        # The browser client labels its own turns "bot"
        if role == "bot":
            role = "assistant"
        if role not in ("user", "assistant"):
            continue

        content = sanitize_input(content)
        if not content:
            continue
        if validate_message_length(content):
            continue
        check = detect_prompt_injection(content)
        if check.is_injection and check.confidence == "high":
            continue

        cleaned.append(ChatMessage(role=role, content=content))
    return cleaned


def validate_response_content(content) -> str:
    """Sanitised model reply. Raises ValueError if it is too long or looks like markup injection."""
    if not isinstance(content, str):
        raise ValueError("Response content must be a string")
    cleaned = sanitize_input(content)
    if len(cleaned) > MAX_MESSAGE_LENGTH * 2:
        raise ValueError("Response content is too long")
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(cleaned):
            raise ValueError("Response contains suspicious content")
    return cleaned


def _number(value, low: float, high: float, *, low_inclusive: bool = True) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number > high:
        return None
    if number < low or (not low_inclusive and number == low):
        return None
    return Decimal(str(number))


def _clean_name(value) -> str | None:
    if not isinstance(value, str):
        return None
    name = sanitize_input(value)
    if not name or len(name) > MAX_NAME_LENGTH:
        return None
    return name


def _clean_names(values) -> list[str] | None:
    if not isinstance(values, list):
        return None
    names = [n for n in (_clean_name(v) for v in values) if n]
    return names or None


def _get(obj: dict, snake: str, camel: str):
    return obj[snake] if snake in obj else obj.get(camel)


def validate_parsed_data(data) -> CalculationPatch | None:
    """
    Narrow a model-extracted payload to a CalculationPatch.

    Unknown keys are ignored, out-of-range numbers and placeholder names are
    dropped field by field. Money is rounded to cents, income to whole units.
    Returns None when the payload is not an object.
    """
    if not isinstance(data, dict):
        return None

    patch = {}

    rent = _number(_get(data, "total_rent", "totalRent"), 0, 10_000_000)
    if rent is not None:
        patch["total_rent"] = round(rent, 2)

    utilities = _number(data.get("utilities"), 0, 1_000_000)
    if utilities is not None:
        patch["utilities"] = round(utilities, 2)

    raw_roommates = data.get("roommates")
    if isinstance(raw_roommates, list):
        roommates = []
        for rm in raw_roommates:
            if not isinstance(rm, dict):
                continue
            name = _clean_name(rm.get("name"))
            if not name or name.lower() in PLACEHOLDER_NAMES:
                continue
            roommate = PatchRoommate(name=name)
            income = _number(rm.get("income"), 0, 10_000_000)
            if income is not None:
                roommate.income = round(income, 0)
            room_size = _number(_get(rm, "room_size", "roomSize"), 0, 10_000, low_inclusive=False)
            if room_size is not None:
                roommate.room_size = round(room_size, 2)
            roommates.append(roommate)
        if roommates:
            patch["roommates"] = roommates

    raw_expenses = _get(data, "custom_expenses", "customExpenses")
    if isinstance(raw_expenses, list):
        expenses = []
        for exp in raw_expenses:
            if not isinstance(exp, dict):
                continue
            name = _clean_name(exp.get("name"))
            amount = _number(exp.get("amount"), 0, 1_000_000, low_inclusive=False)
            if name and amount is not None:
                expenses.append(PatchExpense(name=name, amount=round(amount, 2)))
        if expenses:
            patch["custom_expenses"] = expenses

    remove_roommates = _clean_names(_get(data, "remove_roommates", "removeRoommates"))
    if remove_roommates:
        patch["remove_roommates"] = remove_roommates
    remove_expenses = _clean_names(_get(data, "remove_custom_expenses", "removeCustomExpenses"))
    if remove_expenses:
        patch["remove_custom_expenses"] = remove_expenses

    currency = data.get("currency")
    if isinstance(currency, str) and currency.strip().upper() in SUPPORTED_CURRENCIES:
        patch["currency"] = currency.strip().upper()

    split = _get(data, "use_room_size_split", "useRoomSizeSplit")
    if split is not None:
        patch["use_room_size_split"] = bool(split)

    return CalculationPatch(**patch)
