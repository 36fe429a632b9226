# fees/models.py

"""
Fee ledger models.

- FeeStructure / FeeStructureItem: per grade, year and term charges
- Payment: append-only money received, one row per term touched
- Receipt: before/after balances captured for each payment line
- CarryForwardEntry: arrears or credit moved between academic years
- YearlyClosingBalance: write-once year-end snapshot
"""

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from utils.models import BaseModel, WriteOnceModel

logger = logging.getLogger(__name__)


PAYMENT_METHOD_CHOICES = [
    ('CASH', 'Cash'),
    ('MPESA', 'M-Pesa'),
    ('MOBILE_MONEY', 'Mobile Money'),
    ('BANK_TRANSFER', 'Bank Transfer'),
    ('CHEQUE', 'Cheque'),
    ('CARD', 'Card'),
    ('OTHER', 'Other'),
]


# =============================================================================
# FEE STRUCTURE CATALOG
# =============================================================================

class FeeStructure(BaseModel):
    """
    Charge for one grade in one term of an academic year.

    The debit it produces in the ledger is dated at ``created_at``.
    """

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="fee_structures"
    )
    grade = models.ForeignKey(
        'academics.Grade',
        verbose_name="Grade",
        on_delete=models.PROTECT,
        related_name="fee_structures"
    )
    academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="Academic Year",
        on_delete=models.PROTECT,
        related_name="fee_structures"
    )
    term = models.ForeignKey(
        'academics.Term',
        verbose_name="Term",
        on_delete=models.PROTECT,
        related_name="fee_structures"
    )
    total_amount = models.DecimalField(
        "Total Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    due_date = models.DateField("Due Date", null=True, blank=True)
    description = models.CharField("Description", max_length=255, blank=True)
    is_active = models.BooleanField("Is Active", default=True, db_index=True)

    class Meta:
        verbose_name = "Fee Structure"
        verbose_name_plural = "Fee Structures"
        ordering = ['academic_year__year', 'term__order', 'created_at']
        indexes = [
            models.Index(fields=['school', 'grade', 'academic_year'], name='fee_structure_scope_idx'),
        ]

    def __str__(self):
        return f"{self.grade} - {self.term} ({self.total_amount})"

    def is_in_use(self):
        return Payment.objects.filter(
            term_id=self.term_id,
            student__school_id=self.school_id,
        ).exists()

    def save(self, *args, **kwargs):
        if not self._state.adding:
            stored = FeeStructure.objects.filter(pk=self.pk).values_list('total_amount', flat=True).first()
            if stored is not None and stored != self.total_amount and self.is_in_use():
                raise ValidationError({
                    'total_amount': 'Fee structure is already billed and paid against; create a new structure instead.'
                })
        super().save(*args, **kwargs)


class FeeStructureItem(BaseModel):
    """A named line of a fee structure's breakdown (tuition, books, ...)."""

    fee_structure = models.ForeignKey(
        FeeStructure,
        verbose_name="Fee Structure",
        on_delete=models.CASCADE,
        related_name='items'
    )
    name = models.CharField("Item Name", max_length=100)
    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    order = models.PositiveIntegerField("Order", default=0)

    class Meta:
        verbose_name = "Fee Structure Item"
        verbose_name_plural = "Fee Structure Items"
        ordering = ['fee_structure', 'order']

    def __str__(self):
        return f"{self.name}: {self.amount}"


# =============================================================================
# PAYMENT LEDGER
# =============================================================================

class Payment(WriteOnceModel):
    """
    Money received, scoped to one term.

    A single receipt of money that spans several terms is stored as one
    Payment per term, sharing ``allocation_batch`` and ``reference_number``.
    """

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="payments"
    )
    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name='payments'
    )
    academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="Academic Year",
        on_delete=models.PROTECT,
        related_name="payments"
    )
    term = models.ForeignKey(
        'academics.Term',
        verbose_name="Term",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True
    )
    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    payment_date = models.DateTimeField("Payment Date", db_index=True)
    payment_method = models.CharField(
        "Payment Method",
        max_length=20,
        choices=PAYMENT_METHOD_CHOICES,
        default='CASH'
    )
    reference_number = models.CharField("Reference Number", max_length=100, blank=True, db_index=True)
    receipt_number = models.CharField("Receipt Number", max_length=50, blank=True, db_index=True)
    description = models.CharField("Description", max_length=255, blank=True)
    received_by = models.CharField("Received By", max_length=100)
    is_overpayment = models.BooleanField(
        "Is Overpayment",
        default=False,
        help_text="Excess beyond every term's charge, carried forward at year end"
    )
    allocation_batch = models.UUIDField("Allocation Batch", null=True, blank=True, db_index=True)

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ['payment_date', 'created_at']
        indexes = [
            models.Index(fields=['student', 'academic_year'], name='payment_student_year_idx'),
            models.Index(fields=['payment_date'], name='payment_date_idx'),
        ]

    def __str__(self):
        return f"{self.receipt_number or self.reference_number} - {self.student} ({self.amount})"


class Receipt(WriteOnceModel):
    """Receipt for one payment line, with balances before and after it."""

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="receipts"
    )
    payment = models.OneToOneField(
        Payment,
        verbose_name="Payment",
        on_delete=models.PROTECT,
        related_name='receipt'
    )
    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name='receipts'
    )
    receipt_number = models.CharField("Receipt Number", max_length=50)
    amount = models.DecimalField("Amount", max_digits=12, decimal_places=2)
    payment_date = models.DateTimeField("Payment Date", db_index=True)
    payment_method = models.CharField("Payment Method", max_length=20, choices=PAYMENT_METHOD_CHOICES)
    reference_number = models.CharField("Reference Number", max_length=100, blank=True)
    academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="Academic Year",
        on_delete=models.PROTECT,
        related_name="receipts"
    )
    term = models.ForeignKey(
        'academics.Term',
        verbose_name="Term",
        on_delete=models.PROTECT,
        related_name="receipts",
        null=True,
        blank=True
    )
    academic_year_outstanding_before = models.DecimalField(
        "Academic Year Outstanding Before", max_digits=12, decimal_places=2
    )
    academic_year_outstanding_after = models.DecimalField(
        "Academic Year Outstanding After", max_digits=12, decimal_places=2
    )
    term_outstanding_before = models.DecimalField("Term Outstanding Before", max_digits=12, decimal_places=2)
    term_outstanding_after = models.DecimalField("Term Outstanding After", max_digits=12, decimal_places=2)
    received_by = models.CharField("Received By", max_length=100)

    class Meta:
        verbose_name = "Receipt"
        verbose_name_plural = "Receipts"
        ordering = ['payment_date', 'receipt_number']
        constraints = [
            models.UniqueConstraint(fields=['school', 'receipt_number'], name='unique_receipt_number_per_school'),
        ]

    def __str__(self):
        return self.receipt_number


# =============================================================================
# YEAR TRANSITION
# =============================================================================

class CarryForwardEntry(WriteOnceModel):
    """
    Arrears or credit moved from one academic year into the next.

    This is not a payment: it only opens the next year's ledger.
    """

    ENTRY_TYPE_CHOICES = [
        ('ARREARS', 'Arrears Brought Forward'),
        ('CREDIT', 'Overpayment Credit Brought Forward'),
    ]

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="carry_forward_entries"
    )
    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name='carry_forward_entries'
    )
    from_academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="From Academic Year",
        on_delete=models.PROTECT,
        related_name="carry_forwards_out"
    )
    to_academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="To Academic Year",
        on_delete=models.PROTECT,
        related_name="carry_forwards_in"
    )
    entry_type = models.CharField("Entry Type", max_length=10, choices=ENTRY_TYPE_CHOICES)
    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    entry_date = models.DateTimeField("Entry Date")
    reference = models.CharField("Reference", max_length=50)
    description = models.CharField("Description", max_length=255, blank=True)
    recorded_by = models.CharField("Recorded By", max_length=100, default='System')

    class Meta:
        verbose_name = "Carry Forward Entry"
        verbose_name_plural = "Carry Forward Entries"
        ordering = ['entry_date']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'from_academic_year', 'to_academic_year'],
                name='unique_carry_forward_per_transition'
            ),
        ]

    def __str__(self):
        return f"{self.reference} {self.get_entry_type_display()} {self.amount}"

    @property
    def signed_amount(self):
        """Positive for arrears (a charge), negative for credit."""
        return self.amount if self.entry_type == 'ARREARS' else -self.amount


class YearlyClosingBalance(WriteOnceModel):
    """Point-in-time figures for a student's academic year, written once at year close."""

    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name='yearly_balances'
    )
    academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="Academic Year",
        on_delete=models.PROTECT,
        related_name="closing_balances"
    )
    opening_balance = models.DecimalField("Opening Balance", max_digits=12, decimal_places=2)
    total_charged = models.DecimalField("Total Charged", max_digits=12, decimal_places=2)
    total_paid = models.DecimalField("Total Paid", max_digits=12, decimal_places=2)
    closing_balance = models.DecimalField("Closing Balance", max_digits=12, decimal_places=2)
    is_carried_forward = models.BooleanField("Carried Forward", default=False)
    closed_by = models.CharField("Closed By", max_length=100, default='System')

    class Meta:
        verbose_name = "Yearly Closing Balance"
        verbose_name_plural = "Yearly Closing Balances"
        ordering = ['academic_year__year']
        constraints = [
            models.UniqueConstraint(fields=['student', 'academic_year'], name='unique_closing_balance_per_year'),
        ]

    def __str__(self):
        return f"{self.student} {self.academic_year}: {self.closing_balance}"
