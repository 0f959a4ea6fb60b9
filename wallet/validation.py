import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation

from .config import Settings
from .errors import InvalidPhoneNumberError, ValidationError
from .models import CENTS


def validate_phone_number(phone_number: str, settings: Settings) -> str:
    phone_number = (phone_number or "").strip()
    if not re.fullmatch(settings.phone_pattern, phone_number):
        raise InvalidPhoneNumberError(
            f"Please enter a valid phone number "
            f"({settings.phone_country_code}{'X' * settings.phone_subscriber_digits})"
        )
    return phone_number


def parse_amount(value, field: str = "amount", error: type[ValidationError] = ValidationError) -> Decimal:
    """Parse ``value`` into a cent-quantized decimal; sub-cent amounts are rejected."""
    if isinstance(value, bool):
        raise error(f"Invalid {field}: {value!r}")
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValueError(value)
        cents = amount.quantize(CENTS, rounding=ROUND_DOWN)
    except (InvalidOperation, ValueError) as e:
        raise error(f"Invalid {field}: {value!r}") from e
    if cents != amount:
        raise error(f"Invalid {field}: {value!r} is finer than one cent")
    return cents


def mask_phone(phone_number: str) -> str:
    if len(phone_number) <= 6:
        return "***"
    return f"{phone_number[:5]}***{phone_number[-3:]}"
