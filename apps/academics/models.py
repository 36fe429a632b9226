# academics/models.py

"""
Academic calendar and class structure.

- AcademicYear / Term: the billing calendar fee structures hang off
- Grade: ordered levels, including the seeded Alumni sentinel
- Class: a grade plus an optional section (Grade 1 A)
- ClassProgression: explicit source -> target class rules for promotion
- AcademicProgress: per-year average grade and attendance used by promotion
"""

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

from core.exceptions import NotFound
from utils.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# ACADEMIC CALENDAR
# =============================================================================

class AcademicYear(BaseModel):
    """A school's academic (and billing) year, e.g. 2025."""

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="academic_years"
    )
    year = models.PositiveIntegerField("Year", help_text="Calendar year the academic year starts in")
    name = models.CharField("Name", max_length=50, blank=True)
    start_date = models.DateField("Start Date", null=True, blank=True)
    end_date = models.DateField("End Date", null=True, blank=True)
    is_current = models.BooleanField("Is Current", default=False)

    class Meta:
        verbose_name = "Academic Year"
        verbose_name_plural = "Academic Years"
        ordering = ['school', 'year']
        constraints = [
            models.UniqueConstraint(fields=['school', 'year'], name='unique_academic_year_per_school'),
        ]

    def __str__(self):
        return self.name or str(self.year)

    def save(self, *args, **kwargs):
        if not self.name:
            self.name = str(self.year)
        super().save(*args, **kwargs)
        if self.is_current:
            AcademicYear.objects.filter(school=self.school, is_current=True).exclude(pk=self.pk).update(is_current=False)

    def get_previous(self):
        return AcademicYear.objects.filter(school=self.school, year__lt=self.year).order_by('-year').first()

    def get_next(self):
        return AcademicYear.objects.filter(school=self.school, year__gt=self.year).order_by('year').first()

    @classmethod
    def get_current(cls, school):
        return cls.objects.filter(school=school, is_current=True).first()


class Term(BaseModel):
    """A billing term inside an academic year. ``order`` drives term sequencing."""

    academic_year = models.ForeignKey(
        AcademicYear,
        verbose_name="Academic Year",
        on_delete=models.CASCADE,
        related_name="terms"
    )
    name = models.CharField("Term Name", max_length=50, help_text="E.g. Term 1")
    order = models.PositiveSmallIntegerField("Order", help_text="Position of the term within the year")
    start_date = models.DateField("Start Date", null=True, blank=True)
    end_date = models.DateField("End Date", null=True, blank=True)
    is_current = models.BooleanField("Is Current", default=False)

    class Meta:
        verbose_name = "Term"
        verbose_name_plural = "Terms"
        ordering = ['academic_year__year', 'order']
        constraints = [
            models.UniqueConstraint(fields=['academic_year', 'order'], name='unique_term_order_per_year'),
        ]

    def __str__(self):
        return f"{self.name} {self.academic_year}"

    def clean(self):
        super().clean()
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError({'end_date': 'End date must be after start date.'})


# =============================================================================
# GRADES AND CLASSES
# =============================================================================

class Grade(BaseModel):
    """
    An academic level (Grade 1, Grade 2, ...).

    Every school has exactly one Alumni grade (``is_alumni``), seeded when the
    school is created. It has no classes and is where graduates end up.
    """

    ALUMNI_CODE = 'ALUMNI'
    ALUMNI_NAME = 'Alumni'

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="grades"
    )
    name = models.CharField("Grade Name", max_length=50)
    code = models.CharField("Grade Code", max_length=20)
    level = models.PositiveIntegerField("Level", help_text="Ordering of grades; higher is more senior")
    is_graduation_level = models.BooleanField(
        "Is Graduation Level",
        default=False,
        help_text="Completing this grade graduates the student to Alumni"
    )
    is_alumni = models.BooleanField("Is Alumni Grade", default=False, editable=False)
    is_active = models.BooleanField("Is Active", default=True)

    class Meta:
        verbose_name = "Grade"
        verbose_name_plural = "Grades"
        ordering = ['school', 'level']
        constraints = [
            models.UniqueConstraint(fields=['school', 'code'], name='unique_grade_code_per_school'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_terminal(self):
        """True for the last grade before Alumni."""
        if self.is_alumni:
            return False
        if self.is_graduation_level:
            return True
        return not Grade.objects.filter(
            school_id=self.school_id, is_alumni=False, is_active=True, level__gt=self.level
        ).exists()

    @classmethod
    def get_alumni_grade(cls, school):
        """
        Returns:
            Grade: The school's Alumni sentinel

        Raises:
            NotFound: The school was never initialised
        """
        grade = cls.objects.filter(school=school, is_alumni=True).first()
        if grade is None:
            raise NotFound(f"Alumni grade has not been initialised for school {school.code}")
        return grade

    @classmethod
    def ensure_alumni_grade(cls, school):
        grade, created = cls.objects.get_or_create(
            school=school,
            code=cls.ALUMNI_CODE,
            defaults={
                'name': cls.ALUMNI_NAME,
                'level': 999,
                'is_alumni': True,
            }
        )
        if created:
            logger.info(f"Seeded Alumni grade for school {school.code}")
        return grade


class Class(BaseModel):
    """A class: a grade plus an optional section (stream)."""

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="classes"
    )
    grade = models.ForeignKey(
        Grade,
        verbose_name="Grade",
        on_delete=models.CASCADE,
        related_name="classes"
    )
    section = models.CharField(
        "Section",
        max_length=10,
        blank=True,
        default='',
        help_text="E.g., A, B, C (leave blank if no sections)"
    )
    name = models.CharField("Class Name", max_length=60, blank=True)
    academic_year = models.ForeignKey(
        AcademicYear,
        verbose_name="Academic Year",
        on_delete=models.SET_NULL,
        related_name="classes",
        null=True,
        blank=True
    )
    max_students = models.PositiveIntegerField("Maximum Students", default=40)
    is_active = models.BooleanField("Is Active", default=True)

    class Meta:
        verbose_name = "Class"
        verbose_name_plural = "Classes"
        ordering = ['school', 'grade__level', 'section']

    def __str__(self):
        return self.name or self.get_display_name()

    def clean(self):
        super().clean()
        if self.grade_id and self.grade.is_alumni:
            raise ValidationError({'grade': 'Classes cannot be created for the Alumni grade.'})

    def save(self, *args, **kwargs):
        self.clean()
        if not self.name:
            self.name = self.get_display_name()
        super().save(*args, **kwargs)

    def get_display_name(self):
        if self.section:
            return f"{self.grade.name}{self.section}"
        return self.grade.name


class ClassProgression(BaseModel):
    """
    Explicit promotion rule: students in ``from_class`` move to ``to_class``,
    or to Alumni when ``to_alumni`` is set.
    """

    school = models.ForeignKey(
        'core.School',
        verbose_name="School",
        on_delete=models.CASCADE,
        related_name="class_progressions"
    )
    from_class = models.ForeignKey(
        Class,
        verbose_name="From Class",
        on_delete=models.CASCADE,
        related_name="outgoing_progressions"
    )
    to_class = models.ForeignKey(
        Class,
        verbose_name="To Class",
        on_delete=models.CASCADE,
        related_name="incoming_progressions",
        null=True,
        blank=True
    )
    to_alumni = models.BooleanField("Promote to Alumni", default=False)
    from_academic_year = models.ForeignKey(
        AcademicYear,
        verbose_name="From Academic Year",
        on_delete=models.CASCADE,
        related_name="+",
        null=True,
        blank=True,
        help_text="Leave blank to apply to every year transition"
    )
    criteria = models.ForeignKey(
        'promotions.PromotionCriteria',
        verbose_name="Promotion Criteria",
        on_delete=models.SET_NULL,
        related_name="progressions",
        null=True,
        blank=True
    )
    order = models.PositiveIntegerField("Order", default=0)
    is_active = models.BooleanField("Is Active", default=True)

    class Meta:
        verbose_name = "Class Progression"
        verbose_name_plural = "Class Progressions"
        ordering = ['school', 'order']

    def __str__(self):
        target = 'Alumni' if self.to_alumni else self.to_class
        return f"{self.from_class} -> {target}"

    def clean(self):
        super().clean()
        if self.to_alumni and self.to_class_id:
            raise ValidationError({'to_class': 'A progression to Alumni has no target class.'})
        if not self.to_alumni and not self.to_class_id:
            raise ValidationError({'to_class': 'Target class is required unless promoting to Alumni.'})

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


# =============================================================================
# ACADEMIC PROGRESS
# =============================================================================

class AcademicProgress(BaseModel):
    """
    A student's consolidated results for one academic year.
    Source of the average grade and attendance rate used by promotion.
    """

    student = models.ForeignKey(
        'students.Student',
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name="academic_progress"
    )
    academic_year = models.ForeignKey(
        AcademicYear,
        verbose_name="Academic Year",
        on_delete=models.CASCADE,
        related_name="student_progress"
    )
    average_grade = models.DecimalField(
        "Average Grade (%)",
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    total_school_days = models.PositiveIntegerField("Total School Days", default=0)
    days_attended = models.PositiveIntegerField("Days Attended", default=0)
    subjects_failed = models.PositiveIntegerField("Subjects Failed", default=0)

    class Meta:
        verbose_name = "Academic Progress"
        verbose_name_plural = "Academic Progress Records"
        constraints = [
            models.UniqueConstraint(fields=['student', 'academic_year'], name='unique_progress_per_year'),
        ]

    def __str__(self):
        return f"{self.student} - {self.academic_year}"

    @property
    def attendance_rate(self):
        if not self.total_school_days:
            return None
        rate = Decimal(self.days_attended) * 100 / Decimal(self.total_school_days)
        return rate.quantize(Decimal('0.01'))
