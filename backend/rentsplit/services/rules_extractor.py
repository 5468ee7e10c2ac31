"""
Regex-based form extraction, used when the language model can't be reached.

It only understands a handful of phrasings ("rent is $2000", "Alice makes
$60k", "Bob's room is 150 sq ft", "Internet is $75") but keeps the assistant
useful without an API key. Whatever it finds goes through the same
CalculationPatch as the model's output.
"""
import re
from decimal import Decimal

from rentsplit.schemas.chat import CalculationPatch, ChatReply, PatchExpense, PatchRoommate
from rentsplit.utils.currency_utils import DEFAULT_CURRENCY, SUPPORTED_CURRENCIES, format_currency
from rentsplit.utils.security import PLACEHOLDER_NAMES

_AMOUNT = r"(\d+(?:,\d{3})*(?:\.\d{1,2})?)"

_RENT_PATTERNS = [
    re.compile(r"\brent\s*(?:is|of|:)?\s*(?:about\s+)?\$?\s*" + _AMOUNT, re.I),
    re.compile(r"\$?" + _AMOUNT + r"\s*(?:(?:per|a)\s+month\s+|monthly\s+)?(?:in\s+|for\s+)?rent\b", re.I),
]

_UTILITIES_PATTERNS = [
    re.compile(r"\butilit(?:y|ies)\s*(?:is|are|of|:)?\s*(?:about\s+)?\$?\s*" + _AMOUNT, re.I),
    re.compile(r"\$?" + _AMOUNT + r"\s*(?:for\s+|in\s+)?utilit(?:y|ies)\b", re.I),
]

# Names are capitalised words; the verbs around them are not case sensitive.
_INCOME_RE = re.compile(
    r"\b([A-Z][a-z]+)(?:\s*:\s*|\s+(?i:now\s+)?"
    r"(?i:makes|earns|earning|income\s+is|salary\s+is|has\s+an?\s+income\s+of)\s*)"
    r"\$?\s*(\d+(?:,\d{3})*(?:\.\d+)?)\s*(?i:(k|thousand)\b)?"
    r"(?i:\s*(?:per|a|/)\s*(year|yr|month|mo|week|wk)\b|\s+(annually|yearly|monthly|weekly)\b)?"
)

_SQ_FT = r"(?i:sq\.?\s*ft|square\s+feet|sqft)"
_ROOM_SIZE_PATTERNS = [
    re.compile(r"\b([A-Z][a-z]+)(?:'s)?\s+(?i:room)\s*(?i:is|:)?\s*(\d+)\s*" + _SQ_FT),
    re.compile(r"\b([A-Z][a-z]+)\s+(?i:has)\s+(?i:an?\s+)?(\d+)\s*" + _SQ_FT),
]

_EXPENSE_NAME = r"(internet|wi-?fi|cable|parking|cleaning|netflix|spotify|gym)"
_EXPENSE_PATTERNS = [
    re.compile(r"\b" + _EXPENSE_NAME + r"(?:\s+bill)?\s*(?:is|costs?|:)?\s*\$?\s*" + _AMOUNT, re.I),
    re.compile(r"\$" + _AMOUNT + r"\s+(?:for|on)\s+(?:the\s+)?" + _EXPENSE_NAME + r"\b", re.I),
]

_CURRENCY_RE = re.compile(r"\b([A-Z]{3})\b")

# Capitalised words that start sentences rather than name people
_NOT_NAMES = PLACEHOLDER_NAMES | {
    "my", "our", "his", "her", "their", "he", "she", "they", "it", "and", "also", "then", "but",
    "rent", "utilities", "utility", "internet", "cable", "parking", "cleaning", "gym",
}

_PERIOD_MULTIPLIERS = {
    "month": 12, "mo": 12, "monthly": 12,
    "week": 52, "wk": 52, "weekly": 52,
}

MIN_ANNUAL_INCOME = Decimal("20000")
MAX_ANNUAL_INCOME = Decimal("500000")

_HELP_RE = re.compile(r"\b(?:help|how|what|explain|tell me|show me)\b")
_AUTOFILL_RE = re.compile(r"\b(?:fill|autofill|enter|add|set|put)\b")
_CONFIRMATION_RE = re.compile(r"\b(?:yes|yeah|yep|sure|ok|okay|fill|go ahead|do it|confirm|update|apply)\b", re.I)

HELP_REPLIES = {
    "help-form": (
        "I can help you fill out the form! Just tell me:\n\n"
        '• Your total monthly rent (e.g., "rent is $2000")\n'
        '• Monthly utilities (e.g., "utilities are $300")\n'
        '• Roommate information (e.g., "Alice makes $60k" or "Bob\'s room is 150 sq ft")\n'
        '• Any additional expenses (e.g., "Internet is $75")\n\n'
        "You can tell me all at once or one at a time!"
    ),
    "explain-features": (
        "Rent Splitter helps you split rent and expenses fairly between roommates.\n\n"
        "**Two Split Methods:**\n"
        "• **Income-based:** Higher earners pay more (best for couples/families)\n"
        "• **Room size-based:** Larger rooms pay more, with adjustments for bathrooms, windows, etc.\n\n"
        "**Features:**\n"
        "• Split rent proportionally\n"
        "• Split utilities evenly\n"
        "• Add custom expenses\n"
        "• Generate shareable links\n"
        "• Support for multiple currencies"
    ),
    "income-vs-room": (
        "Here's the difference between the two split methods:\n\n"
        "**Income-Based Split:**\n"
        "• Rent is split based on annual income\n"
        "• Higher earners pay proportionally more\n\n"
        "**Room Size-Based Split:**\n"
        "• Rent is split based on square footage\n"
        "• You can adjust for: Private bathrooms (+15%), no windows (-10%), flex walls (-5%)\n\n"
        "Utilities are always split evenly regardless of method!"
    ),
    "general-help": (
        "I can help you with:\n\n"
        "• Understanding how the app works\n"
        "• Filling out the form automatically\n"
        "• Explaining the difference between split methods\n\n"
        "What would you like to know?"
    ),
}

NOTHING_FOUND_REPLY = (
    "I couldn't find any rent or roommate information in your message. Could you try telling me:\n\n"
    '• "Rent is $2000"\n'
    '• "Utilities are $300"\n'
    '• "Alice makes $60k"\n'
    "• \"Bob's room is 150 sq ft\"\n\n"
    'Or say "help" for more guidance!'
)
READY_REPLY = (
    "I'm ready to help! Tell me your rent information, roommate details, "
    "or ask me a question about how the app works."
)
DEFAULT_REPLY = (
    "I'm here to help! I can:\n\n"
    "• Help you fill out the form automatically\n"
    "• Explain how the app works\n"
    "• Answer questions about features\n\n"
    'Try saying "help me fill the form" or ask me a question!'
)


def _to_decimal(raw: str) -> Decimal:
    return Decimal(raw.replace(",", ""))


def _first_amount(patterns: list[re.Pattern], text: str, upper: Decimal) -> Decimal | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            amount = _to_decimal(match.group(1))
            if 0 < amount < upper:
                return amount
    return None


def extract_rent(text: str) -> Decimal | None:
    return _first_amount(_RENT_PATTERNS, text, Decimal("100000"))


def extract_utilities(text: str) -> Decimal | None:
    return _first_amount(_UTILITIES_PATTERNS, text, Decimal("10000"))


def extract_roommates(text: str) -> list[PatchRoommate]:
    """
    Roommates with an annual income and/or a room size, in order of first
    mention. Monthly and weekly incomes are annualised; anything outside
    20k-500k a year is ignored.
    """
    found: dict[str, PatchRoommate] = {}

    def roommate(name: str) -> PatchRoommate:
        return found.setdefault(name.lower(), PatchRoommate(name=name))

    for match in _INCOME_RE.finditer(text):
        name, raw_amount, thousands, period, period_word = match.groups()
        if name.lower() in _NOT_NAMES:
            continue
        income = _to_decimal(raw_amount)
        if thousands:
            income *= 1000
        income *= _PERIOD_MULTIPLIERS.get((period or period_word or "").lower(), 1)
        if MIN_ANNUAL_INCOME <= income <= MAX_ANNUAL_INCOME:
            roommate(name).income = income

    for pattern in _ROOM_SIZE_PATTERNS:
        for match in pattern.finditer(text):
            name, raw_size = match.groups()
            size = Decimal(raw_size)
            if name.lower() not in _NOT_NAMES and 0 < size < 5000:
                roommate(name).room_size = size

    return list(found.values())


def extract_custom_expenses(text: str) -> list[PatchExpense]:
    expenses: dict[str, PatchExpense] = {}
    for i, pattern in enumerate(_EXPENSE_PATTERNS):
        for match in pattern.finditer(text):
            name, raw_amount = match.groups() if i == 0 else reversed(match.groups())
            amount = _to_decimal(raw_amount)
            if 0 < amount < 10000:
                name = name[:1].upper() + name[1:]
                expenses.setdefault(name.lower(), PatchExpense(name=name, amount=amount))
    return list(expenses.values())


def extract_split_method(text: str) -> bool | None:
    lower = text.lower()
    if re.search(r"\b(?:income|salary|earn)", lower) and re.search(r"\b(?:based|split)\b", lower):
        return False
    if re.search(r"\b(?:room|size|square|sq\s*ft)\b", lower):
        return True
    return None


def extract_currency(text: str) -> str | None:
    for match in _CURRENCY_RE.finditer(text):
        if match.group(1) in SUPPORTED_CURRENCIES:
            return match.group(1)
    return None


def extract_patch(text: str) -> CalculationPatch:
    return CalculationPatch(
        total_rent=extract_rent(text),
        utilities=extract_utilities(text),
        roommates=extract_roommates(text) or None,
        custom_expenses=extract_custom_expenses(text) or None,
        currency=extract_currency(text),
        use_room_size_split=extract_split_method(text),
    )


def detect_intent(message: str) -> str:
    lower = message.lower()
    if _HELP_RE.search(lower):
        if re.search(r"\b(?:form|fill|enter|input)\b", lower):
            return "help-form"
        if re.search(r"\b(?:work|works|feature|features|do|use|app)\b", lower):
            return "explain-features"
        if re.search(r"\b(?:income|room|size|difference|split)\b", lower):
            return "income-vs-room"
        return "general-help"
    if _AUTOFILL_RE.search(lower):
        return "autofill"
    return "general"


def is_confirmation(message: str) -> bool:
    return bool(_CONFIRMATION_RE.search(message))


def describe_patch(patch: CalculationPatch, currency: str = DEFAULT_CURRENCY) -> list[str]:
    """One human-readable line per extracted item."""
    currency = patch.currency or currency
    items = []
    if patch.total_rent is not None:
        items.append(f"Monthly rent: {format_currency(patch.total_rent, currency)}")
    if patch.utilities is not None:
        items.append(f"Utilities: {format_currency(patch.utilities, currency)}")
    for rm in patch.roommates or []:
        if rm.income is not None:
            items.append(f"Roommate: {rm.name} (income: {format_currency(rm.income, currency)})")
        if rm.room_size is not None:
            items.append(f"Roommate: {rm.name} (room size: {rm.room_size} sq ft)")
    for exp in patch.custom_expenses or []:
        items.append(f"Expense: {exp.name} ({format_currency(exp.amount, currency)})")
    if patch.currency is not None:
        items.append(f"Currency: {patch.currency}")
    if patch.use_room_size_split is not None:
        items.append(f"Split by: {'room size' if patch.use_room_size_split else 'income'}")
    return items


def reply_from_rules(message: str, currency: str | None = None) -> ChatReply:
    """
    Answer a chat message without the language model.

    Amounts found in the message win over help questions, so "how do I
    split $2000 rent?" still fills in the rent. A bare split method or
    currency only counts when the message isn't a help question.
    """
    patch = extract_patch(message)
    intent = detect_intent(message)
    has_amounts = any(
        value is not None for value in (patch.total_rent, patch.utilities, patch.roommates, patch.custom_expenses)
    )

    if has_amounts or (not patch.is_empty() and intent not in HELP_REPLIES):
        items = describe_patch(patch, currency or DEFAULT_CURRENCY)
        content = (
            "I found the following information:\n\n" + "\n".join(items) + "\n\n"
            'Would you like me to fill this in? (Say "yes" or "fill it in" to confirm)'
        )
        return ChatReply(content=content, patch=patch, source="rules")

    if intent in HELP_REPLIES:
        return ChatReply(content=HELP_REPLIES[intent], source="rules")
    if intent == "autofill":
        return ChatReply(content=NOTHING_FOUND_REPLY, source="rules")
    if is_confirmation(message):
        return ChatReply(content=READY_REPLY, source="rules")
    return ChatReply(content=DEFAULT_REPLY, source="rules")
