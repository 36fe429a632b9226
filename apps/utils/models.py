# utils/models.py

"""
Base models shared by every app.

Key Features:
- UUID primary keys
- Timestamps in the school's operational timezone
- User and IP tracking from the thread-local request context
- Write-once base for ledger and audit records
- Financial audit log
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import models

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("financial_audit")


# =============================================================================
# BASE MODEL
# =============================================================================

class BaseModel(models.Model):
    """
    Base model with audit trail fields.

    - created_at / updated_at are set from the school clock, not auto_now,
      so callers may backdate created_at when importing history
    - created_by_id / updated_by_id are CharFields holding the acting user id
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    created_at = models.DateTimeField(
        "Created At",
        db_index=True,
        help_text="When this record was created (in school's operational timezone)"
    )
    updated_at = models.DateTimeField(
        "Updated At",
        db_index=True,
        help_text="When this record was last updated (in school's operational timezone)"
    )

    created_by_id = models.CharField(
        "Created By ID",
        max_length=50,
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of user who created this record"
    )
    updated_by_id = models.CharField(
        "Updated By ID",
        max_length=50,
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of user who last updated this record"
    )
    created_from_ip = models.GenericIPAddressField(
        "Created From IP",
        null=True,
        blank=True,
    )
    change_reason = models.CharField(
        "Change Reason",
        max_length=255,
        blank=True,
        null=True,
        help_text="Explanation for why this change was made"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        from utils.context import get_request_context
        from core.utils import get_school_current_time

        is_new = self._state.adding
        now = get_school_current_time()

        if is_new:
            if not self.created_at:
                self.created_at = now
            if not self.updated_at:
                self.updated_at = self.created_at
        else:
            self.updated_at = now

        context = get_request_context()
        if context:
            user = context.get('user')
            if is_new:
                if user and not self.created_by_id:
                    self.created_by_id = str(user.pk)
                if context.get('ip_address') and not self.created_from_ip:
                    self.created_from_ip = context['ip_address']
            if user:
                self.updated_by_id = str(user.pk)
        elif is_new:
            logger.debug(
                f"No request context available when creating {self.__class__.__name__}. "
                f"Audit fields will not be populated."
            )

        return super().save(*args, **kwargs)


class WriteOnceModel(BaseModel):
    """
    Base for financial and audit records that are never mutated.

    Corrections are made through compensating entries, so both updates and
    deletes raise ValidationError.
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError(
                f"{self._meta.verbose_name} records are write-once and cannot be modified"
            )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            f"{self._meta.verbose_name} records are write-once and cannot be deleted"
        )


# =============================================================================
# FINANCIAL AUDIT LOG
# =============================================================================

class FinancialAuditLog(models.Model):
    """
    Audit trail for money movements and balance-affecting operations.
    Rows are mirrored to the ``financial_audit`` logger.
    """

    FINANCIAL_ACTIONS = [
        ('FEE_STRUCTURE_CREATE', 'Fee Structure Created'),
        ('PAYMENT_RECEIVE', 'Payment Received'),
        ('OVERPAYMENT_RECORD', 'Overpayment Recorded'),
        ('YEAR_CLOSE', 'Academic Year Closed'),
        ('BALANCE_CARRY_FORWARD', 'Balance Carried Forward'),
        ('STUDENT_PROMOTE', 'Student Promoted'),
        ('STUDENT_GRADUATE', 'Student Graduated'),
    ]

    RISK_LEVELS = [
        ('LOW', 'Low'),
        ('MEDIUM', 'Medium'),
        ('HIGH', 'High'),
    ]

    id = models.AutoField(primary_key=True)
    timestamp = models.DateTimeField("Timestamp", db_index=True)
    action = models.CharField(max_length=30, choices=FINANCIAL_ACTIONS, db_index=True)

    user_id = models.CharField(max_length=50, null=True, blank=True, db_index=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    object_type = models.CharField(max_length=100, null=True, blank=True)
    object_id = models.CharField(max_length=100, null=True, blank=True)

    amount_involved = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        null=True,
        blank=True,
    )
    currency = models.CharField(max_length=3, null=True, blank=True)

    student_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    student_name = models.CharField(max_length=200, null=True, blank=True)

    risk_level = models.CharField(max_length=10, choices=RISK_LEVELS, default='LOW')
    additional_data = models.JSONField(default=dict, blank=True)
    notes = models.TextField(null=True, blank=True)
    is_automated = models.BooleanField(default=False)
    batch_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)

    class Meta:
        verbose_name = "Financial Audit Log"
        verbose_name_plural = "Financial Audit Logs"
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['timestamp', 'action'], name='audit_timestamp_action_idx'),
            models.Index(fields=['student_id', 'timestamp'], name='audit_student_timestamp_idx'),
        ]

    def __str__(self):
        return f"{self.get_action_display()} - {self.amount_involved or ''} ({self.timestamp:%Y-%m-%d %H:%M})"

    @classmethod
    def log_financial_action(
        cls,
        action,
        user_id=None,
        target_object=None,
        amount=None,
        currency=None,
        student=None,
        risk_level='LOW',
        additional_data=None,
        notes=None,
        is_automated=False,
        batch_id=None,
    ):
        """
        Create an audit row and mirror it to the financial_audit logger.

        Args:
            action: Action type from FINANCIAL_ACTIONS
            user_id: Id of the acting user (falls back to request context)
            target_object: Model instance the action applies to
            amount: Monetary amount involved
            currency: ISO currency code
            student: Student the action concerns
            risk_level: LOW, MEDIUM or HIGH
            additional_data: JSON-serialisable context
            notes: Free text

        Returns:
            FinancialAuditLog: The created row
        """
        from core.utils import get_school_current_time
        from utils.context import get_request_context

        context = get_request_context() or {}
        if not user_id and context.get('user') is not None:
            user_id = str(context['user'].pk)

        amount_involved = None
        if amount is not None:
            try:
                amount_involved = Decimal(str(amount))
            except (ValueError, InvalidOperation, TypeError):
                logger.warning(f"Invalid amount for financial audit log: {amount}")

        entry = cls.objects.create(
            timestamp=get_school_current_time(),
            action=action,
            user_id=str(user_id)[:50] if user_id else None,
            ip_address=context.get('ip_address'),
            object_type=target_object.__class__.__name__ if target_object is not None else None,
            object_id=str(target_object.pk) if target_object is not None else None,
            amount_involved=amount_involved,
            currency=(currency or '')[:3].upper() or None,
            student_id=str(student.pk) if student is not None else None,
            student_name=str(student)[:200] if student is not None else None,
            risk_level=risk_level,
            additional_data=additional_data or {},
            notes=(notes or '')[:2000],
            is_automated=is_automated,
            batch_id=batch_id,
        )

        audit_logger.info(
            f"{action} amount={amount_involved} student={entry.student_id} "
            f"object={entry.object_type}:{entry.object_id} user={entry.user_id}"
        )
        return entry
