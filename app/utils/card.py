import re
from datetime import datetime
from typing import Optional


def luhn_valid(number: str) -> bool:
    digits = re.sub(r"[\s-]", "", number or "")
    if not digits.isdigit() or not 12 <= len(digits) <= 19:
        return False

    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0


def expiry_valid(month, year, now: Optional[datetime] = None) -> bool:
    """A card is usable through the last day of its expiry month."""
    try:
        month = int(month)
        year = int(year)
    except (TypeError, ValueError):
        return False

    if not 1 <= month <= 12:
        return False
    if year < 100:
        year += 2000

    now = now or datetime.utcnow()
    return (year, month) >= (now.year, now.month)


def validate_card(card) -> Optional[str]:
    """Returns an error message, or None when the card passes local checks."""
    if card is None:
        return "Card details required"
    if not luhn_valid(card.number):
        return "Invalid card number"
    if not expiry_valid(card.expiry_month, card.expiry_year):
        return "Card has expired or expiry date is invalid"
    return None
