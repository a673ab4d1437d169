"""
Amount and IBAN validation for payouts.

Pure functions without I/O. `validate_amount` raises, `validate_german_iban`
is a predicate and never raises.

Known limitation of the IBAN check: ISO 7064 MOD-97-10 detects every
single-digit substitution, but some multi-digit substitutions and
transpositions yield the same remainder and pass.
"""

import re
from typing import Any

from .exceptions import InvalidAmount

# Minimum 1.00 EUR, maximum 1.000.000,00 EUR
MIN_AMOUNT_MINOR_UNITS = 100
MAX_AMOUNT_MINOR_UNITS = 100_000_000

GERMAN_IBAN_PATTERN = re.compile(r"^DE[0-9]{20}$")


def validate_amount(amount_minor_units: Any) -> int:
    """
    Validiert einen Betrag in Cents.

    Args:
        amount_minor_units: Betrag in der kleinsten Währungseinheit

    Returns:
        Den unveränderten Betrag

    Raises:
        InvalidAmount: Kein Integer, unter 1.00 EUR oder über 1.000.000,00 EUR
    """
    # bool is an int subclass
    if isinstance(amount_minor_units, bool) or not isinstance(amount_minor_units, int):
        raise InvalidAmount(
            "Amount must be an integer number of minor units", amount_minor_units
        )
    if amount_minor_units < MIN_AMOUNT_MINOR_UNITS:
        raise InvalidAmount("Mindestbetrag ist 1.00 EUR", amount_minor_units)
    if amount_minor_units > MAX_AMOUNT_MINOR_UNITS:
        raise InvalidAmount("Maximalbetrag ist 1.000.000,00 EUR", amount_minor_units)
    return amount_minor_units


def is_valid_amount(amount_minor_units: Any) -> bool:
    try:
        validate_amount(amount_minor_units)
    except InvalidAmount:
        return False
    return True


def normalize_iban(iban: str) -> str:
    """Entfernt Leerzeichen und konvertiert zu Großbuchstaben."""
    return "".join(iban.split()).upper()


def _iban_to_numeral(iban: str) -> str:
    rearranged = iban[4:] + iban[:4]
    digits = []
    for char in rearranged:
        if "A" <= char <= "Z":
            digits.append(str(ord(char) - ord("A") + 10))
        elif char.isdigit():
            digits.append(char)
        else:
            return ""
    return "".join(digits)


def validate_german_iban(iban: Any) -> bool:
    """
    Validiert eine deutsche IBAN (DE + 20 Ziffern, Modulo-97-Prüfung).

    Args:
        iban: IBAN, Leerzeichen und Kleinbuchstaben sind erlaubt

    Returns:
        True wenn Format und Prüfsumme stimmen, sonst False
    """
    if not isinstance(iban, str):
        return False

    normalized = normalize_iban(iban)
    if not GERMAN_IBAN_PATTERN.match(normalized):
        return False

    numeral = _iban_to_numeral(normalized)
    if not numeral:
        return False
    return int(numeral) % 97 == 1
