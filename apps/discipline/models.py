# discipline/models.py

"""
Disciplinary records. Promotion criteria count a student's cases per
academic year; dismissed incidents are not cases.
"""

import logging

from django.db import models

from utils.models import BaseModel

logger = logging.getLogger(__name__)


class DisciplinaryRecord(BaseModel):

    SEVERITY_LEVEL_CHOICES = [
        ('minor', 'Minor'),
        ('moderate', 'Moderate'),
        ('major', 'Major'),
        ('severe', 'Severe'),
    ]

    RECORD_STATUS_CHOICES = [
        ('reported', 'Reported'),
        ('investigating', 'Under Investigation'),
        ('action_taken', 'Action Taken'),
        ('resolved', 'Resolved'),
        ('dismissed', 'Dismissed'),
    ]

    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name="disciplinary_records"
    )
    academic_year = models.ForeignKey(
        'academics.AcademicYear',
        verbose_name="Academic Year",
        on_delete=models.CASCADE,
        related_name="disciplinary_records"
    )
    incident_date = models.DateField("Incident Date", db_index=True)
    incident_type = models.CharField("Incident Type", max_length=100)
    severity_level = models.CharField(
        "Severity Level",
        max_length=20,
        choices=SEVERITY_LEVEL_CHOICES,
        default='minor'
    )
    description = models.TextField("Description", blank=True)
    record_status = models.CharField(
        "Record Status",
        max_length=20,
        choices=RECORD_STATUS_CHOICES,
        default='reported'
    )
    is_resolved = models.BooleanField("Is Resolved", default=False, db_index=True)

    class Meta:
        verbose_name = "Disciplinary Record"
        verbose_name_plural = "Disciplinary Records"
        ordering = ['-incident_date']
        indexes = [
            models.Index(fields=['student', 'academic_year'], name='discipline_student_year_idx'),
        ]

    def __str__(self):
        return f"{self.student} - {self.incident_type} ({self.incident_date})"

    @classmethod
    def count_cases(cls, student, academic_year):
        """Number of non-dismissed incidents for the student in the year."""
        return cls.objects.filter(
            student=student,
            academic_year=academic_year,
        ).exclude(record_status='dismissed').count()
