# fees/services.py

"""
Fee ledger services.

- FeeStructureService: validated creation of fee structures and their breakdown
- BalanceService: balances, arrears and statements for a student
- PaymentService: the Payment Allocator (one payment spread across terms)
- YearTransitionService: year-end closing snapshots and carry-forward

Services take an optional FeeLedgerRepository; the ORM-backed one is used
by default.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction

from core.exceptions import FeeStructureNotFound
from core.utils import ZERO, get_school_current_time, get_school_timezone, parse_amount
from fees.ledger import (
    CarryForwardRecord,
    PaymentRecord,
    compute_balances,
    dedupe_fee_structures,
    normalize_breakdown,
    summarize_transactions,
)
from fees.models import (
    CarryForwardEntry,
    FeeStructure,
    FeeStructureItem,
    Payment,
    PAYMENT_METHOD_CHOICES,
    Receipt,
    YearlyClosingBalance,
)
from fees.repositories import DjangoFeeLedgerRepository
from fees.statements import build_statement, summarize_statement
from fees.utils import build_carry_forward_reference, generate_payment_reference, generate_receipt_number
from utils.audit import log_financial_activity

logger = logging.getLogger(__name__)


# =============================================================================
# FEE STRUCTURE CATALOG
# =============================================================================

class FeeStructureService:

    @staticmethod
    @transaction.atomic
    def create_fee_structure(school, grade, academic_year, term, breakdown, total_amount=None,
                             due_date=None, description='', created_by=None):
        """
        Create a fee structure with its itemised breakdown.

        Args:
            school: School instance
            grade: Grade instance (not the Alumni grade)
            academic_year: AcademicYear instance
            term: Term instance belonging to academic_year
            breakdown: list of {name, value} dicts or a {name: value} mapping
            total_amount: Optional; must equal the breakdown sum when given

        Returns:
            FeeStructure

        Raises:
            ValidationError: On any invalid field, before anything is written
        """
        if grade.school_id != school.pk or academic_year.school_id != school.pk:
            raise ValidationError({'school': 'Grade and academic year must belong to the school'})
        if grade.is_alumni:
            raise ValidationError({'grade': 'Fee structures cannot be created for the Alumni grade'})
        if term.academic_year_id != academic_year.pk:
            raise ValidationError({'term': f"{term} does not belong to academic year {academic_year}"})

        lines = normalize_breakdown(breakdown)
        items_total = sum((line.value for line in lines), ZERO)

        if total_amount is None:
            if not lines:
                raise ValidationError({'breakdown': 'A breakdown or total amount is required'})
            total = items_total
        else:
            total = parse_amount(total_amount, field='total_amount', allow_zero=True)
            if lines and total != items_total:
                raise ValidationError({
                    'total_amount': f"Total {total} does not match breakdown sum {items_total}"
                })

        if FeeStructure.objects.filter(
            school=school, grade=grade, academic_year=academic_year, term=term, is_active=True
        ).exists():
            raise ValidationError({
                'term': f"An active fee structure already exists for {grade} in {term}"
            })

        fee_structure = FeeStructure.objects.create(
            school=school,
            grade=grade,
            academic_year=academic_year,
            term=term,
            total_amount=total,
            due_date=due_date,
            description=description,
            created_by_id=created_by,
        )
        FeeStructureItem.objects.bulk_create([
            FeeStructureItem(
                fee_structure=fee_structure,
                name=line.name,
                amount=line.value,
                order=index,
                created_at=fee_structure.created_at,
                updated_at=fee_structure.created_at,
            )
            for index, line in enumerate(lines)
        ])

        log_financial_activity(
            'FEE_STRUCTURE_CREATE',
            user_id=created_by,
            target_object=fee_structure,
            amount=total,
            additional_data={'grade': grade.name, 'term': str(term)},
        )
        logger.info(f"Created fee structure {fee_structure.pk} for {grade} {term}: {total}")
        return fee_structure


def _opening_date(academic_year, previous):
    """Start of ``academic_year`` in school time, falling back to the end of ``previous``."""
    opening = academic_year.start_date or previous.end_date or date(academic_year.year, 1, 1)
    return datetime.combine(opening, time.min, tzinfo=get_school_timezone())


# =============================================================================
# BALANCES
# =============================================================================

class BalanceService:
    """Read-side of the ledger: balances, arrears and statements."""

    def __init__(self, repository=None):
        self.repository = repository or DjangoFeeLedgerRepository()

    def get_opening_records(self, student, academic_year):
        """
        Carry-forward records that open ``academic_year``.

        Stored carry-forward entries are used when the previous year has been
        closed; otherwise the previous year's closing balance is computed live.
        """
        entries = self.repository.get_carry_forwards(student, academic_year)
        if entries:
            return entries

        previous = academic_year.get_previous()
        if previous is None:
            return []
        if student.joined_academic_year_id and student.joined_academic_year.year > previous.year:
            return []

        closing = self.get_student_balances(student, previous).academic_year_outstanding
        if closing == ZERO:
            return []
        return [CarryForwardRecord(
            id=None,
            to_academic_year_id=str(academic_year.pk),
            to_year=academic_year.year,
            from_year=previous.year,
            signed_amount=closing,
            entry_date=_opening_date(academic_year, previous),
            reference='B/F',
            description=f"BALANCE BROUGHT FORWARD FROM {previous.year}",
        )]

    def get_student_balances(self, student, academic_year=None, term=None):
        """
        Args:
            student: Student instance
            academic_year: Restrict to one year (opening balance included);
                None computes over the full history
            term: Term whose slice is reported as term_outstanding

        Returns:
            BalanceResult
        """
        fee_structures = self.repository.get_fee_structures(student, academic_year)
        payments = self.repository.get_payments(student, academic_year)
        carry_forwards = self.get_opening_records(student, academic_year) if academic_year else []
        return compute_balances(
            fee_structures,
            payments,
            carry_forwards=carry_forwards,
            scope_term_id=term.pk if term is not None else None,
            filter_academic_year=academic_year.year if academic_year else None,
        )

    def get_year_summary(self, student, academic_year):
        result = self.get_student_balances(student, academic_year)
        return summarize_transactions(result.transactions)

    def get_student_arrears(self, student, before_year):
        """Sum of positive closing balances of the years before ``before_year``."""
        closings = YearlyClosingBalance.objects.filter(
            student=student,
            academic_year__year__lt=before_year.year,
            closing_balance__gt=0,
        ).values_list('closing_balance', flat=True)
        return sum(closings, ZERO)

    def get_student_statement(self, student, academic_year=None):
        """
        Returns:
            dict: rows (list[StatementRow]) and summary totals
        """
        result = self.get_student_balances(student, academic_year)
        rows = build_statement(result.transactions)
        summary = summarize_statement(rows)
        summary['academic_year_outstanding'] = result.academic_year_outstanding
        if academic_year is not None:
            summary['arrears_brought_forward'] = self.get_student_arrears(student, academic_year)
        return {'rows': rows, 'summary': summary}


# =============================================================================
# PAYMENT ALLOCATOR
# =============================================================================

@dataclass
class AllocationResult:
    payments_created: list = field(default_factory=list)
    receipts_created: list = field(default_factory=list)
    unallocated_amount: Decimal = ZERO

    @property
    def total_allocated(self):
        return sum((p.amount for p in self.payments_created), ZERO)

    def as_dict(self):
        return {
            'payments': [str(p.pk) for p in self.payments_created],
            'receipts': [r.receipt_number for r in self.receipts_created],
            'allocations': [
                {'term': str(p.term), 'amount': p.amount, 'is_overpayment': p.is_overpayment}
                for p in self.payments_created
            ],
            'total_allocated': self.total_allocated,
            'unallocated_amount': self.unallocated_amount,
        }


class PaymentService:
    """Apply incoming money to a student's terms."""

    VALID_METHODS = {code for code, _ in PAYMENT_METHOD_CHOICES}

    def __init__(self, repository=None):
        self.balances = BalanceService(repository)
        self.repository = self.balances.repository

    def _validate(self, amount, method, recorded_by):
        amount = parse_amount(amount)
        if method not in self.VALID_METHODS:
            raise ValidationError({'payment_method': f"Unsupported payment method: {method}"})
        if not (recorded_by or '').strip():
            raise ValidationError({'recorded_by': 'This field is required'})
        return amount

    @transaction.atomic
    def apply_payment(self, student, amount, academic_year, starting_term=None, method='CASH',
                      description='', recorded_by='', payment_date=None, reference_number=None):
        """
        Spread a payment across the student's terms, oldest unpaid term first.

        Each term touched gets its own Payment and Receipt. Money left after
        the last term is posted to that term as an overpayment and reported
        as ``unallocated_amount``; the year-end transition carries it forward.

        Args:
            student: Student instance
            amount: Positive amount (str, int or Decimal)
            academic_year: AcademicYear the payment is for
            starting_term: First term to allocate to; defaults to the earliest unpaid term
            method: One of PAYMENT_METHOD_CHOICES
            description: Free text shown on the statement
            recorded_by: Person recording the payment
            payment_date: Defaults to now in school time
            reference_number: External reference; generated when omitted

        Returns:
            AllocationResult

        Raises:
            ValidationError: Invalid amount, method or recorder
            FeeStructureNotFound: No fee structure for the year (or starting term)
        """
        amount = self._validate(amount, method, recorded_by)

        fee_structures = self.repository.get_fee_structures(student, academic_year)
        if not fee_structures:
            raise FeeStructureNotFound(f"No fee structure found for {student} in {academic_year}")

        terms = sorted(dedupe_fee_structures(fee_structures), key=lambda r: r.term_order)
        payments = list(self.repository.get_payments(student, academic_year))
        carry_forwards = self.balances.get_opening_records(student, academic_year)

        def balances():
            return compute_balances(
                fee_structures, payments, carry_forwards=carry_forwards,
                filter_academic_year=academic_year.year,
            )

        current = balances()

        if starting_term is not None:
            start = next((i for i, r in enumerate(terms) if r.term_id == str(starting_term.pk)), None)
            if start is None:
                raise FeeStructureNotFound(f"No fee structure found for {starting_term}")
        else:
            start = next(
                (i for i, r in enumerate(terms) if current.term_outstanding_for(r.term_id) > 0),
                len(terms) - 1,
            )

        from academics.models import Term
        term_objects = {str(t.pk): t for t in Term.objects.filter(pk__in=[r.term_id for r in terms])}

        payment_date = payment_date or get_school_current_time()
        reference_number = reference_number or generate_payment_reference(student.school)
        batch = uuid.uuid4()
        result = AllocationResult()
        remaining = amount

        def post(term_record, allocated, is_overpayment=False):
            nonlocal current
            term_id = term_record.term_id
            before = current
            payment = Payment.objects.create(
                school=student.school,
                student=student,
                academic_year=academic_year,
                term=term_objects[term_id],
                amount=allocated,
                payment_date=payment_date,
                payment_method=method,
                reference_number=reference_number,
                receipt_number=generate_receipt_number(student.school),
                description=description or (
                    'Overpayment carried forward at year end' if is_overpayment else ''
                ),
                received_by=recorded_by,
                is_overpayment=is_overpayment,
                allocation_batch=batch,
            )
            payments.append(PaymentRecord.from_model(payment))
            current = balances()

            receipt = Receipt.objects.create(
                school=student.school,
                payment=payment,
                student=student,
                receipt_number=payment.receipt_number,
                amount=allocated,
                payment_date=payment_date,
                payment_method=method,
                reference_number=reference_number,
                academic_year=academic_year,
                term=payment.term,
                academic_year_outstanding_before=before.academic_year_outstanding,
                academic_year_outstanding_after=current.academic_year_outstanding,
                term_outstanding_before=before.term_outstanding_for(term_id),
                term_outstanding_after=current.term_outstanding_for(term_id),
                received_by=recorded_by,
            )
            result.payments_created.append(payment)
            result.receipts_created.append(receipt)

            log_financial_activity(
                'OVERPAYMENT_RECORD' if is_overpayment else 'PAYMENT_RECEIVE',
                target_object=payment,
                amount=allocated,
                student=student,
                notes=f"{method} {reference_number} -> {term_record.term} {term_record.year}",
                risk_level='MEDIUM' if is_overpayment else 'LOW',
                batch_id=str(batch),
            )

        for term_record in terms[start:]:
            if remaining <= 0:
                break
            outstanding = current.term_outstanding_for(term_record.term_id)
            if outstanding <= 0:
                continue
            allocated = min(remaining, outstanding)
            post(term_record, allocated)
            remaining -= allocated

        if remaining > 0:
            post(terms[-1], remaining, is_overpayment=True)
            result.unallocated_amount = remaining
            logger.warning(
                f"Payment {reference_number} for {student} exceeds outstanding fees by {remaining}; "
                f"held on {terms[-1].term} for year-end carry forward"
            )

        logger.info(
            f"Processed payment {reference_number} of {amount} for {student}: "
            f"{len(result.payments_created)} allocation(s), unallocated {result.unallocated_amount}"
        )
        return result


# =============================================================================
# YEAR TRANSITION
# =============================================================================

class YearTransitionService:
    """Close a student's academic year and carry the balance into the next."""

    def __init__(self, repository=None):
        self.balances = BalanceService(repository)

    @transaction.atomic
    def close_student_year(self, student, academic_year, next_academic_year=None, recorded_by='System'):
        """
        Write the year's closing snapshot and, for a non-zero balance, a
        CarryForwardEntry into ``next_academic_year``.

        Re-running for an already closed year returns the stored snapshot.

        Returns:
            YearlyClosingBalance
        """
        existing = YearlyClosingBalance.objects.filter(student=student, academic_year=academic_year).first()
        if existing is not None:
            return existing

        summary = self.balances.get_year_summary(student, academic_year)
        closing = summary['closing_balance']
        carry = closing != ZERO and next_academic_year is not None

        snapshot = YearlyClosingBalance.objects.create(
            student=student,
            academic_year=academic_year,
            opening_balance=summary['opening_balance'],
            total_charged=summary['total_charged'],
            total_paid=summary['total_paid'],
            closing_balance=closing,
            is_carried_forward=carry,
            closed_by=recorded_by,
        )

        if carry:
            is_arrears = closing > 0
            entry = CarryForwardEntry.objects.create(
                school=student.school,
                student=student,
                from_academic_year=academic_year,
                to_academic_year=next_academic_year,
                entry_type='ARREARS' if is_arrears else 'CREDIT',
                amount=abs(closing),
                entry_date=get_school_current_time(),
                reference=build_carry_forward_reference(academic_year.year, next_academic_year.year),
                description=(
                    f"Fee Balance Carried Forward from {academic_year} to {next_academic_year}"
                    if is_arrears else
                    f"Overpayment Credit Carried Forward from {academic_year} to {next_academic_year}"
                ),
                recorded_by=recorded_by,
            )
            log_financial_activity(
                'BALANCE_CARRY_FORWARD',
                target_object=entry,
                amount=entry.signed_amount,
                student=student,
                is_automated=True,
            )

        logger.info(f"Closed {academic_year} for {student}: closing balance {closing}")
        return snapshot

    def close_school_year(self, school, academic_year, next_academic_year=None, recorded_by='System'):
        """
        Close the year for every student of a school.
        A failure for one student is recorded and does not stop the others.

        Returns:
            dict: {'closed': [...], 'skipped': [...], 'errors': [...]}
        """
        from students.models import Student

        results = {'closed': [], 'skipped': [], 'errors': []}
        already_closed = set(
            YearlyClosingBalance.objects.filter(academic_year=academic_year).values_list('student_id', flat=True)
        )

        for student in Student.objects.filter(school=school).select_related('school', 'joined_academic_year'):
            if student.pk in already_closed:
                results['skipped'].append(str(student.pk))
                continue
            try:
                self.close_student_year(student, academic_year, next_academic_year, recorded_by)
                results['closed'].append(str(student.pk))
            except Exception as e:
                logger.error(f"Failed to close {academic_year} for {student}: {e}", exc_info=True)
                results['errors'].append(f"{student.admission_number}: {e}")

        log_financial_activity(
            'YEAR_CLOSE',
            user_id=recorded_by,
            notes=f"{school.code} {academic_year}",
            additional_data={k: len(v) for k, v in results.items()},
            is_automated=True,
        )
        logger.info(
            f"Year close for {school.code} {academic_year} completed: "
            f"{len(results['closed'])} closed, {len(results['skipped'])} skipped, "
            f"{len(results['errors'])} failed"
        )
        return results
