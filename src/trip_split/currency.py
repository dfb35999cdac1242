"""Currency conversion and display helpers."""

from decimal import ROUND_HALF_UP, Decimal

# (code, name, symbol), grouped by region
COMMON_CURRENCIES: list[tuple[str, str, str]] = [
    # Asia
    ("CNY", "Chinese Yuan", "¥"),
    ("JPY", "Japanese Yen", "¥"),
    ("KRW", "South Korean Won", "₩"),
    ("TWD", "New Taiwan Dollar", "NT$"),
    ("HKD", "Hong Kong Dollar", "HK$"),
    ("SGD", "Singapore Dollar", "S$"),
    ("THB", "Thai Baht", "฿"),
    ("AED", "UAE Dirham", "د.إ"),
    ("INR", "Indian Rupee", "₹"),
    ("MYR", "Malaysian Ringgit", "RM"),
    ("IDR", "Indonesian Rupiah", "Rp"),
    ("VND", "Vietnamese Dong", "₫"),
    # Americas
    ("USD", "US Dollar", "$"),
    ("CAD", "Canadian Dollar", "C$"),
    ("BRL", "Brazilian Real", "R$"),
    ("MXN", "Mexican Peso", "$"),
    # Europe
    ("EUR", "Euro", "€"),
    ("GBP", "British Pound", "£"),
    ("CHF", "Swiss Franc", "Fr"),
    ("SEK", "Swedish Krona", "kr"),
    ("NOK", "Norwegian Krone", "kr"),
    ("DKK", "Danish Krone", "kr"),
    # Oceania
    ("AUD", "Australian Dollar", "A$"),
    ("NZD", "New Zealand Dollar", "NZ$"),
    # Other
    ("ZAR", "South African Rand", "R"),
    ("RUB", "Russian Ruble", "₽"),
    ("TRY", "Turkish Lira", "₺"),
]


def convert_currency(
    amount: Decimal, from_currency: str, to_currency: str, exchange_rate: Decimal
) -> Decimal:
    """
    Convert an amount using a known exchange rate.

    Same-currency amounts pass through untouched; converted amounts are
    rounded to cents.
    """
    if from_currency.upper() == to_currency.upper():
        return amount

    converted = amount * exchange_rate
    return converted.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def get_currency_symbol(currency_code: str) -> str:
    """Get the display symbol for a currency, falling back to its code."""
    code = currency_code.upper()
    for known_code, _name, symbol in COMMON_CURRENCIES:
        if known_code == code:
            return symbol
    return currency_code


def format_currency(amount: Decimal, currency_code: str = "CNY") -> str:
    """Format an amount with its currency symbol, e.g. -¥1,234.50."""
    symbol = get_currency_symbol(currency_code)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
