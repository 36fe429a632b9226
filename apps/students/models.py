# students/models.py

"""
Student records.

Class membership follows a one-way state machine:
Enrolled(class=C) -> Enrolled(class=C') | Alumni. Alumni have no class, are
inactive and carry an Alumni record.
"""

import logging

from django.db import models

from utils.models import BaseModel, WriteOnceModel

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT
# =============================================================================

class Student(BaseModel):

    ENROLLMENT_STATUS_CHOICES = (
        ('ACTIVE', 'Active'),
        ('SUSPENDED', 'Suspended'),
        ('GRADUATED', 'Graduated'),
        ('TRANSFERRED', 'Transferred'),
        ('WITHDRAWN', 'Withdrawn'),
    )

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="students"
    )
    admission_number = models.CharField("Admission Number", max_length=30)
    first_name = models.CharField("First Name", max_length=100)
    middle_name = models.CharField("Middle Name", max_length=100, blank=True)
    last_name = models.CharField("Last Name", max_length=100)

    grade = models.ForeignKey(
        'academics.Grade',
        verbose_name="Current Grade",
        on_delete=models.PROTECT,
        related_name="students",
        null=True,
        blank=True
    )
    current_class = models.ForeignKey(
        'academics.Class',
        verbose_name="Current Class",
        on_delete=models.SET_NULL,
        related_name="students",
        null=True,
        blank=True
    )

    # Join point: fee structures before this year/term are not billed
    joined_academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="Joined Academic Year",
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True
    )
    joined_term = models.ForeignKey(
        'academics.Term',
        verbose_name="Joined Term",
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True
    )
    date_admitted = models.DateField("Date Admitted", null=True, blank=True)

    is_active = models.BooleanField("Is Active", default=True, db_index=True)
    enrollment_status = models.CharField(
        "Enrollment Status",
        max_length=20,
        choices=ENROLLMENT_STATUS_CHOICES,
        default='ACTIVE',
        db_index=True
    )
    graduation_date = models.DateField("Graduation Date", null=True, blank=True)

    class Meta:
        verbose_name = "Student"
        verbose_name_plural = "Students"
        ordering = ['last_name', 'first_name']
        constraints = [
            models.UniqueConstraint(fields=['school', 'admission_number'], name='unique_admission_number_per_school'),
        ]
        indexes = [
            models.Index(fields=['school', 'is_active'], name='student_school_active_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.admission_number})"

    def save(self, *args, **kwargs):
        if self.current_class_id and not self.grade_id:
            self.grade_id = self.current_class.grade_id
        super().save(*args, **kwargs)

    def get_full_name(self):
        if self.middle_name:
            return f"{self.first_name} {self.middle_name} {self.last_name}"
        return f"{self.first_name} {self.last_name}"

    @property
    def is_alumni(self):
        return self.enrollment_status == 'GRADUATED' or bool(self.grade_id and self.grade.is_alumni)


# =============================================================================
# ALUMNI
# =============================================================================

class Alumni(WriteOnceModel):
    """Graduation record written when a student is promoted out of the terminal grade."""

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="alumni"
    )
    student = models.OneToOneField(
        Student,
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name="alumni_record"
    )
    graduation_year = models.PositiveIntegerField("Graduation Year", db_index=True)
    graduation_date = models.DateField("Graduation Date")
    final_class_name = models.CharField("Final Class", max_length=60, blank=True)
    final_grade_name = models.CharField("Final Grade", max_length=50, blank=True)
    final_average_grade = models.DecimalField(
        "Final Average Grade (%)",
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True
    )
    outstanding_balance = models.DecimalField(
        "Outstanding Balance at Graduation",
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True
    )
    recorded_by = models.CharField("Recorded By", max_length=100, blank=True)

    class Meta:
        verbose_name = "Alumni"
        verbose_name_plural = "Alumni"
        ordering = ['-graduation_year', 'student__last_name']

    def __str__(self):
        return f"{self.student.get_full_name()} (Class of {self.graduation_year})"
