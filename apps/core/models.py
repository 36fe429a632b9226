# core/models.py

"""
Tenant and school-wide configuration models.

- School: the tenant every ledger and promotion record hangs off
- FinancialSettings: per-school currency and document numbering
"""

import logging

from django.conf import settings
from django.db import models

from utils.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# SCHOOL
# =============================================================================

class School(BaseModel):
    """A school (tenant). All students, classes and fee data belong to one."""

    code = models.CharField(
        "School Code",
        max_length=30,
        unique=True,
        help_text="Short unique code used to identify the school"
    )
    name = models.CharField("School Name", max_length=200)
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "School"
        verbose_name_plural = "Schools"
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"


# =============================================================================
# FINANCIAL SETTINGS
# =============================================================================

class FinancialSettings(BaseModel):
    """
    Currency and numbering policy for a school.
    One row per school, created on first access.
    """

    school = models.OneToOneField(
        School,
        on_delete=models.CASCADE,
        related_name='financial_settings',
        verbose_name="School"
    )

    currency = models.CharField(
        "School Currency",
        max_length=3,
        default='KES',
        help_text='Primary currency for this school (ISO 4217 code)'
    )

    receipt_prefix = models.CharField("Receipt Prefix", max_length=10, default='RCP')
    payment_prefix = models.CharField("Payment Reference Prefix", max_length=10, default='PAY')
    include_year_in_numbers = models.BooleanField(
        "Include Year in Numbers",
        default=True,
        help_text="Format numbers as PREFIX-YEAR-000001 instead of PREFIX-000001"
    )

    class Meta:
        verbose_name = "Financial Settings"
        verbose_name_plural = "Financial Settings"

    def __str__(self):
        return f"Financial settings for {self.school.code}"

    @classmethod
    def get_for_school(cls, school):
        """
        Get or create the settings row for a school, seeded from settings.BURSAR.

        Returns:
            FinancialSettings
        """
        defaults = getattr(settings, 'BURSAR', {})
        instance, created = cls.objects.get_or_create(
            school=school,
            defaults={
                'currency': defaults.get('DEFAULT_CURRENCY', 'KES'),
                'receipt_prefix': defaults.get('RECEIPT_PREFIX', 'RCP'),
                'payment_prefix': defaults.get('PAYMENT_REFERENCE_PREFIX', 'PAY'),
            }
        )
        if created:
            logger.info(f"Created financial settings for school {school.code}")
        return instance

    def format_currency(self, amount):
        from core.utils import to_money
        return f"{self.currency} {to_money(amount):,.2f}"
