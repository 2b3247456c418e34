import re
from datetime import date
from typing import Optional, Tuple

CARD_NUMBER_RE = re.compile(r"^\d{13,19}$")
EXPIRY_RE = re.compile(r"^(\d{2})/(\d{2})$")
CVV_RE = re.compile(r"^\d{3,4}$")


def digits_only(v: str) -> str:
    return re.sub(r"\D", "", v or "")


def luhn_ok(number: str) -> bool:
    if not CARD_NUMBER_RE.match(number or ""):
        return False
    total = 0
    for i, ch in enumerate(reversed(number)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def parse_short_expiry(v: str) -> Optional[Tuple[int, int]]:
    """'MM/YY' -> (mois, année sur 4 chiffres) ou None."""
    m = EXPIRY_RE.match((v or "").strip())
    if not m:
        return None
    month = int(m.group(1))
    if month < 1 or month > 12:
        return None
    return month, 2000 + int(m.group(2))


def expiry_in_future(v: str, today: Optional[date] = None) -> bool:
    parsed = parse_short_expiry(v)
    if not parsed:
        return False
    month, year = parsed
    today = today or date.today()
    if year < today.year:
        return False
    if year == today.year and month < today.month:
        return False
    return True


def validate_card_number(v: str) -> str:
    number = digits_only(v)
    if not luhn_ok(number):
        raise ValueError("Numéro de carte invalide")
    return number


def validate_expiry(v: str) -> str:
    if not expiry_in_future(v):
        raise ValueError("Date d'expiration invalide (format MM/YY)")
    return v.strip()


def validate_cvv(v: str) -> str:
    if not CVV_RE.match((v or "").strip()):
        raise ValueError("CVV invalide (3 ou 4 chiffres)")
    return v.strip()


def validate_phone_number(v: str) -> str:
    if len(digits_only(v)) < 7:
        raise ValueError("Please enter a valid phone number.")
    return v.strip()
