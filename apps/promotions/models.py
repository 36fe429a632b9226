# promotions/models.py

"""
Promotion configuration and audit records.

- PromotionCriteria: named, versioned, prioritised rule set for a grade
- CriteriaItem: one rule of a set (grade, fee balance, attendance, ...)
- PromotionLog: write-once record of an executed promotion
- PromotionExclusion: why a student was left out of a promotion run
"""

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from utils.models import BaseModel, WriteOnceModel

logger = logging.getLogger(__name__)


# =============================================================================
# CRITERIA
# =============================================================================

class PromotionCriteria(BaseModel):
    """
    A rule set for promoting students out of one grade.

    Either list CriteriaItem rows, or fill in the structured thresholds;
    items take precedence when both are present.
    """

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="promotion_criteria"
    )
    grade = models.ForeignKey(
        'academics.Grade',
        verbose_name="Class Level",
        on_delete=models.CASCADE,
        related_name="promotion_criteria"
    )
    name = models.CharField("Name", max_length=100)
    description = models.TextField("Description", blank=True)
    priority = models.PositiveIntegerField("Priority", default=1, help_text="Lower numbers are tried first")
    version = models.PositiveIntegerField("Version", default=1, editable=False)
    is_active = models.BooleanField("Is Active", default=True, db_index=True)

    min_grade = models.DecimalField(
        "Minimum Average Grade (%)", max_digits=5, decimal_places=2, null=True, blank=True
    )
    max_fee_balance = models.DecimalField(
        "Maximum Fee Balance", max_digits=12, decimal_places=2, null=True, blank=True
    )
    max_disciplinary_cases = models.PositiveIntegerField("Maximum Disciplinary Cases", null=True, blank=True)
    min_attendance = models.DecimalField(
        "Minimum Attendance (%)", max_digits=5, decimal_places=2, null=True, blank=True
    )

    class Meta:
        verbose_name = "Promotion Criteria"
        verbose_name_plural = "Promotion Criteria"
        ordering = ['school', 'grade__level', 'priority']
        indexes = [
            models.Index(fields=['school', 'grade', 'is_active'], name='criteria_school_grade_idx'),
        ]

    def __str__(self):
        return f"{self.name} v{self.version} ({self.grade})"

    def to_criteria_set(self):
        """Build the evaluator's CriteriaSet for this rule set."""
        from promotions.eligibility import CriteriaSet, items_from_thresholds

        items = [item.to_item() for item in self.items.all()]
        if not items:
            items = items_from_thresholds(
                min_grade=self.min_grade,
                max_fee_balance=self.max_fee_balance,
                max_disciplinary_cases=self.max_disciplinary_cases,
                min_attendance=self.min_attendance,
            )
        return CriteriaSet(
            name=self.name,
            priority=self.priority,
            items=tuple(items),
            criteria_id=str(self.pk),
            version=self.version,
        )

    def snapshot(self):
        """JSON-serialisable copy of the rule set stored on promotion logs."""
        criteria_set = self.to_criteria_set()
        return {
            'id': str(self.pk),
            'name': self.name,
            'version': self.version,
            'priority': self.priority,
            'items': [item.as_dict() for item in criteria_set.items],
        }


class CriteriaItem(BaseModel):
    """One rule inside a PromotionCriteria set."""

    KIND_CHOICES = [
        ('grade', 'Minimum Average Grade'),
        ('fee_balance', 'Maximum Fee Balance'),
        ('attendance', 'Minimum Attendance'),
        ('disciplinary', 'Maximum Disciplinary Cases'),
        ('subject_failures', 'Maximum Subject Failures'),
        ('custom', 'Custom'),
    ]

    criteria = models.ForeignKey(
        PromotionCriteria,
        verbose_name="Criteria",
        on_delete=models.CASCADE,
        related_name="items"
    )
    kind = models.CharField("Type", max_length=20, choices=KIND_CHOICES)
    name = models.CharField("Name", max_length=100, blank=True)
    limit = models.DecimalField(
        "Limit",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    unit = models.CharField("Unit", max_length=20, blank=True)
    is_required = models.BooleanField(
        "Required",
        default=False,
        help_text="Fee balance: full payment required. Disciplinary: clean record required. "
                  "Custom: missing values fail."
    )
    order = models.PositiveIntegerField("Order", default=0)

    class Meta:
        verbose_name = "Criteria Item"
        verbose_name_plural = "Criteria Items"
        ordering = ['criteria', 'order']

    def __str__(self):
        return f"{self.get_kind_display()} {self.limit}{self.unit}"

    def to_item(self):
        from promotions.eligibility import build_item
        return build_item(
            kind=self.kind,
            limit=self.limit,
            name=self.name,
            unit=self.unit,
            is_required=self.is_required,
        )

    def clean(self):
        super().clean()
        try:
            self.to_item()
        except ValidationError as e:
            raise ValidationError({'limit': e.messages})


# =============================================================================
# AUDIT RECORDS
# =============================================================================

class PromotionLog(WriteOnceModel):
    """One executed promotion of one student."""

    PROMOTION_TYPE_CHOICES = [
        ('single', 'Single Student'),
        ('bulk', 'Bulk Selection'),
        ('class', 'Whole Class'),
        ('school', 'School-wide'),
    ]

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="promotion_logs"
    )
    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name="promotion_logs"
    )
    batch_id = models.UUIDField("Batch", db_index=True)

    from_class = models.ForeignKey(
        'academics.Class', on_delete=models.SET_NULL, related_name="+", null=True, blank=True
    )
    to_class = models.ForeignKey(
        'academics.Class', on_delete=models.SET_NULL, related_name="+", null=True, blank=True
    )
    from_class_name = models.CharField("From Class", max_length=60, blank=True)
    to_class_name = models.CharField("To Class", max_length=60, blank=True)
    from_grade = models.ForeignKey(
        'academics.Grade', on_delete=models.SET_NULL, related_name="+", null=True, blank=True
    )
    to_grade = models.ForeignKey(
        'academics.Grade', on_delete=models.SET_NULL, related_name="+", null=True, blank=True
    )
    from_academic_year = models.ForeignKey(
        'academics.AcademicYear', on_delete=models.PROTECT, related_name="+", null=True, blank=True
    )
    to_academic_year = models.ForeignKey(
        'academics.AcademicYear', on_delete=models.PROTECT, related_name="+", null=True, blank=True
    )

    promotion_type = models.CharField("Promotion Type", max_length=10, choices=PROMOTION_TYPE_CHOICES)
    promotion_date = models.DateTimeField("Promotion Date", db_index=True)
    promoted_by = models.CharField("Promoted By", max_length=100)

    criteria_snapshot = models.JSONField("Criteria Snapshot", default=dict, blank=True)
    criteria_results = models.JSONField("Criteria Results", default=list, blank=True)
    is_manual_override = models.BooleanField("Manual Override", default=False)
    override_reason = models.TextField("Override Reason", blank=True)
    is_graduation = models.BooleanField("Graduation", default=False)

    average_grade = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    outstanding_balance = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    disciplinary_cases = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField("Notes", blank=True)

    class Meta:
        verbose_name = "Promotion Log"
        verbose_name_plural = "Promotion Logs"
        ordering = ['-promotion_date']
        indexes = [
            models.Index(fields=['student', 'promotion_date'], name='promotion_log_student_idx'),
            models.Index(fields=['school', 'promotion_date'], name='promotion_log_school_idx'),
        ]

    def __str__(self):
        return f"{self.student}: {self.from_class_name} -> {self.to_class_name}"


class PromotionExclusion(WriteOnceModel):
    """A student left out of a promotion run, and why."""

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="promotion_exclusions"
    )
    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name="promotion_exclusions"
    )
    batch_id = models.UUIDField("Batch", db_index=True)
    academic_year = models.ForeignKey(
        'academics.AcademicYear', on_delete=models.PROTECT, related_name="+", null=True, blank=True
    )
    reason = models.TextField("Reason")
    notes = models.TextField("Notes", blank=True)
    excluded_by = models.CharField("Excluded By", max_length=100)

    class Meta:
        verbose_name = "Promotion Exclusion"
        verbose_name_plural = "Promotion Exclusions"
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.student}: {self.reason}"
