"""Value normalization shared by the rule engine and narrative parsing"""

import re
from decimal import Decimal, ROUND_HALF_UP

_COUNTRY_ALIASES = {"UNITED ARAB EMIRATES": "UAE"}
_CODE_FENCE = re.compile(r"```(?:json)?\n?")


def normalize_vendor(name: str | None) -> str:
    """Trimmed, uppercased vendor name ("" when missing)"""
    return (name or "").strip().upper()


def normalize_country(country: str | None) -> str:
    country = (country or "").strip().upper()
    return _COUNTRY_ALIASES.get(country, country)


def to_cents(amount: Decimal) -> int:
    """Round half-up to the smallest currency unit"""
    return int((Decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_amount(amount: Decimal) -> str:
    """1234567.5 -> '1,234,567.50'"""
    return f"{Decimal(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,}"


def strip_code_fences(content: str) -> str:
    """Remove markdown ``` / ```json fences models wrap around JSON"""
    return _CODE_FENCE.sub("", content).strip()
