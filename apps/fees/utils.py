# fees/utils.py

"""
Fee Management Utility Functions

Contains:
- Receipt and payment reference number generation
- Carry-forward reference formatting
"""

from django.conf import settings as django_settings
from django.db import transaction
from django.db.models import Max
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# REFERENCE NUMBER GENERATION
# =============================================================================

def _build_search_prefix(prefix, include_year):
    from core.utils import get_school_current_time

    prefix = (prefix or '').strip()
    if prefix and include_year:
        return f"{prefix}-{get_school_current_time().year}-"
    if prefix:
        return f"{prefix}-"
    return ""


def _next_number(queryset, field, search_prefix):
    """Highest existing sequence under ``search_prefix`` plus one."""
    if search_prefix:
        queryset = queryset.filter(**{f"{field}__startswith": search_prefix})
    else:
        queryset = queryset.exclude(**{field: ''})

    result = queryset.aggregate(max_number=Max(field))
    if not result['max_number']:
        return 1
    try:
        return int(result['max_number'].split('-')[-1]) + 1
    except (ValueError, IndexError):
        numbers = []
        for value in queryset.values_list(field, flat=True):
            numeric_part = ''.join(filter(str.isdigit, value.split('-')[-1]))
            if numeric_part:
                numbers.append(int(numeric_part))
        return max(numbers) + 1 if numbers else 1


def _format_number(search_prefix, number):
    formatted_number = f"{number:06d}" if number <= 999999 else str(number)
    return f"{search_prefix}{formatted_number}"


def _lock_settings(school):
    """Serialise number generation per school on its FinancialSettings row."""
    from core.models import FinancialSettings

    settings = FinancialSettings.get_for_school(school)
    return FinancialSettings.objects.select_for_update().get(pk=settings.pk)


def generate_receipt_number(school):
    """
    Generate the next receipt number for a school.
    Format: RCP-2025-000001 (or RCP-000001 without the year)

    Returns:
        str: Unique receipt number
    """
    from fees.models import Receipt

    with transaction.atomic():
        settings = _lock_settings(school)
        search_prefix = _build_search_prefix(settings.receipt_prefix, settings.include_year_in_numbers)
        number = _next_number(
            Receipt.objects.filter(school=school),
            'receipt_number',
            search_prefix,
        )
        return _format_number(search_prefix, number)


def generate_payment_reference(school):
    """
    Generate the reference shared by every payment line of one allocation.
    Format: PAY-2025-000001
    """
    from fees.models import Payment

    with transaction.atomic():
        settings = _lock_settings(school)
        search_prefix = _build_search_prefix(settings.payment_prefix, settings.include_year_in_numbers)
        number = _next_number(
            Payment.objects.filter(school=school),
            'reference_number',
            search_prefix,
        )
        return _format_number(search_prefix, number)


def build_carry_forward_reference(from_year, to_year):
    prefix = django_settings.BURSAR.get('CARRY_FORWARD_PREFIX', 'CF')
    return f"{prefix}-{from_year}-{to_year}"
