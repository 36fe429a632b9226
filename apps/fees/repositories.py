# fees/repositories.py

"""
Data access for the Balance Calculator and Payment Allocator.

Services receive a repository instead of querying models directly, so the
ledger can be fed from the ORM or from any other source of records.
"""

import logging

from django.db.models import Q

from fees.ledger import CarryForwardRecord, FeeStructureRecord, PaymentRecord

logger = logging.getLogger(__name__)


class FeeLedgerRepository:
    """Interface for loading a student's ledger records."""

    def get_fee_structures(self, student, academic_year=None):
        """FeeStructureRecord list billed to the student, oldest first."""
        raise NotImplementedError

    def get_payments(self, student, academic_year=None):
        """PaymentRecord list for the student, oldest first."""
        raise NotImplementedError

    def get_carry_forwards(self, student, academic_year):
        """CarryForwardRecord list moved into ``academic_year``."""
        raise NotImplementedError


class DjangoFeeLedgerRepository(FeeLedgerRepository):
    """ORM-backed repository."""

    def _grades_by_year(self, student):
        """
        Grade the student was billed under per academic year.

        Years the student was promoted out of are taken from the promotion
        log; every other year uses the current grade.
        """
        from promotions.models import PromotionLog

        return dict(
            PromotionLog.objects.filter(student=student, from_grade__isnull=False)
            .values_list('from_academic_year_id', 'from_grade_id')
        )

    def _join_filter(self, student):
        if not student.joined_academic_year_id:
            return Q()
        joined_year = student.joined_academic_year.year
        before_join = Q(academic_year__year__lt=joined_year)
        if student.joined_term_id:
            before_join |= Q(
                academic_year__year=joined_year,
                term__order__lt=student.joined_term.order,
            )
        return ~before_join

    def get_fee_structures(self, student, academic_year=None):
        from fees.models import FeeStructure

        grades_by_year = self._grades_by_year(student)
        grade_filter = Q(grade_id=student.grade_id) & ~Q(academic_year_id__in=list(grades_by_year))
        for year_id, grade_id in grades_by_year.items():
            grade_filter |= Q(academic_year_id=year_id, grade_id=grade_id)

        queryset = FeeStructure.objects.filter(
            school_id=student.school_id,
            is_active=True,
        ).filter(grade_filter).filter(self._join_filter(student))

        if academic_year is not None:
            queryset = queryset.filter(academic_year=academic_year)

        queryset = (
            queryset.select_related('academic_year', 'term')
            .prefetch_related('items')
            .order_by('created_at', 'pk')
        )
        return [FeeStructureRecord.from_model(fs) for fs in queryset]

    def get_payments(self, student, academic_year=None):
        from fees.models import Payment

        queryset = Payment.objects.filter(student=student)
        if academic_year is not None:
            queryset = queryset.filter(academic_year=academic_year)
        queryset = queryset.select_related('academic_year', 'term').order_by('payment_date', 'created_at')
        return [PaymentRecord.from_model(payment) for payment in queryset]

    def get_carry_forwards(self, student, academic_year):
        from fees.models import CarryForwardEntry

        queryset = CarryForwardEntry.objects.filter(
            student=student,
            to_academic_year=academic_year,
        ).select_related('from_academic_year', 'to_academic_year').order_by('entry_date')
        return [CarryForwardRecord.from_model(entry) for entry in queryset]
