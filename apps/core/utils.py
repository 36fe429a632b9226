# core/utils.py

"""
Central utilities shared across apps.

- School clock (current time / today in the school's timezone)
- Money parsing and rounding
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from zoneinfo import ZoneInfo

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


# =============================================================================
# SCHOOL CLOCK
# =============================================================================

def get_school_timezone():
    return ZoneInfo(settings.TIME_ZONE)


def get_school_current_time():
    """
    Get current time in school's operational timezone.

    Returns:
        datetime: Current aware datetime in school's timezone
    """
    return timezone.now().astimezone(get_school_timezone())


def get_school_today():
    """
    Today's date in the school's timezone.

    Use this instead of date.today() for term and year boundary checks.
    """
    return get_school_current_time().date()


# =============================================================================
# MONEY
# =============================================================================

def to_money(value):
    """Round a numeric value to cents. None counts as zero."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value, field='amount', allow_zero=False, allow_negative=False):
    """
    Parse a user-supplied amount.

    Args:
        value: str, int, float or Decimal
        field: Field name used in the ValidationError
        allow_zero: Accept 0
        allow_negative: Accept negative values

    Returns:
        Decimal: The amount rounded to cents

    Raises:
        ValidationError: {field: message} when the value is malformed or out of range
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError({field: "This field is required"})
    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({field: f"Invalid amount: {value!r}"})

    if not amount.is_finite():
        raise ValidationError({field: f"Invalid amount: {value!r}"})
    if amount < 0 and not allow_negative:
        raise ValidationError({field: "Amount cannot be negative"})
    if amount == 0 and not allow_zero:
        raise ValidationError({field: "Amount must be greater than zero"})
    return amount
