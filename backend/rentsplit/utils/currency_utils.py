from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")

DEFAULT_CURRENCY = "USD"

# code -> (name, symbol)
SUPPORTED_CURRENCIES: dict[str, tuple[str, str]] = {
    "USD": ("US Dollar", "$"),
    "EUR": ("Euro", "€"),
    "GBP": ("British Pound", "£"),
    "CAD": ("Canadian Dollar", "C$"),
    "AUD": ("Australian Dollar", "A$"),
    "JPY": ("Japanese Yen", "¥"),
    "CHF": ("Swiss Franc", "CHF"),
    "SEK": ("Swedish Krona", "kr"),
    "NOK": ("Norwegian Krone", "kr"),
    "DKK": ("Danish Krone", "kr"),
    "PLN": ("Polish Zloty", "zł"),
    "CZK": ("Czech Koruna", "Kč"),
    "HUF": ("Hungarian Forint", "Ft"),
    "BRL": ("Brazilian Real", "R$"),
    "MXN": ("Mexican Peso", "$"),
    "INR": ("Indian Rupee", "₹"),
    "CNY": ("Chinese Yuan", "¥"),
    "KRW": ("South Korean Won", "₩"),
    "SGD": ("Singapore Dollar", "S$"),
    "HKD": ("Hong Kong Dollar", "HK$"),
    "NZD": ("New Zealand Dollar", "NZ$"),
    "ZAR": ("South African Rand", "R"),
    "TRY": ("Turkish Lira", "₺"),
    "RUB": ("Russian Ruble", "₽"),
    "AED": ("UAE Dirham", "د.إ"),
    "EGP": ("Egyptian Pound", "£"),
    "THB": ("Thai Baht", "฿"),
    "PHP": ("Philippine Peso", "₱"),
    "IDR": ("Indonesian Rupiah", "Rp"),
    "MYR": ("Malaysian Ringgit", "RM"),
    "VND": ("Vietnamese Dong", "₫"),
}

# Stable numeric codes used by share tokens. Gaps are retired currencies.
CURRENCY_CODES: dict[str, int] = {
    "USD": 1, "EUR": 2, "GBP": 3, "CAD": 4, "AUD": 5, "JPY": 6,
    "CHF": 7, "SEK": 8, "NOK": 9, "DKK": 10, "PLN": 11, "CZK": 12,
    "HUF": 13, "BRL": 14, "MXN": 15, "INR": 16, "CNY": 17, "KRW": 18,
    "SGD": 19, "HKD": 20, "NZD": 21, "ZAR": 22, "TRY": 23, "RUB": 24,
    "AED": 26, "EGP": 28, "THB": 29, "PHP": 30,
    "IDR": 31, "MYR": 32, "VND": 33,
}
_CODES_TO_CURRENCY = {v: k for k, v in CURRENCY_CODES.items()}


def round_currency(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def currency_to_code(currency: str) -> int:
    return CURRENCY_CODES.get(currency.upper(), CURRENCY_CODES[DEFAULT_CURRENCY])


def code_to_currency(code: int) -> str:
    return _CODES_TO_CURRENCY.get(code, DEFAULT_CURRENCY)


def get_currency_symbol(currency: str = DEFAULT_CURRENCY) -> str:
    entry = SUPPORTED_CURRENCIES.get(currency.upper())
    return entry[1] if entry else "$"


def format_currency(amount: Decimal, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Format an amount for display, e.g. Decimal("-1234.5") -> "-$1,234.50".
    Unknown currency codes are prefixed with the code itself.
    """
    code = currency.upper()
    symbol = get_currency_symbol(code) if code in SUPPORTED_CURRENCIES else f"{code} "
    rounded = round_currency(Decimal(amount))
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"
