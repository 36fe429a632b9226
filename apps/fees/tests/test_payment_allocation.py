from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase

from academics.models import Grade
from core.exceptions import FeeStructureNotFound
from core.utils import get_school_current_time
from fees.models import FeeStructure, Payment, Receipt
from fees.services import BalanceService, FeeStructureService, PaymentService
from utils.models import FinancialAuditLog
from utils.tests.factories import (
    get_term,
    make_academic_year,
    make_class,
    make_grades,
    make_school,
    make_student,
)


class AllocationTestCase(TestCase):

    def setUp(self):
        self.school = make_school()
        self.year = make_academic_year(self.school, 2025, is_current=True, terms=2)
        self.term1 = get_term(self.year, 1)
        self.term2 = get_term(self.year, 2)
        self.grade = make_grades(self.school, levels=2)[0]
        self.student = make_student(self.school, make_class(self.school, self.grade))
        self.service = PaymentService()
        self.balances = BalanceService()

    def add_fee(self, term, amount):
        return FeeStructureService.create_fee_structure(
            self.school, self.grade, self.year, term,
            [{'name': 'Tuition', 'value': amount}],
        )

    def pay(self, amount, **kwargs):
        kwargs.setdefault('method', 'MPESA')
        kwargs.setdefault('recorded_by', 'Bursar')
        return self.service.apply_payment(self.student, amount, self.year, **kwargs)


class PaymentAllocatorTests(AllocationTestCase):

    def test_payment_spreads_across_terms(self):
        self.add_fee(self.term1, 10000)
        self.add_fee(self.term2, 10000)

        result = self.pay('15000', starting_term=self.term1)

        self.assertEqual([p.amount for p in result.payments_created], [Decimal('10000'), Decimal('5000')])
        self.assertEqual([p.term for p in result.payments_created], [self.term1, self.term2])
        self.assertEqual(result.unallocated_amount, Decimal('0'))
        self.assertEqual(result.total_allocated, Decimal('15000'))

        term1 = self.balances.get_student_balances(self.student, self.year, term=self.term1)
        term2 = self.balances.get_student_balances(self.student, self.year, term=self.term2)
        self.assertEqual(term1.term_outstanding, Decimal('0'))
        self.assertEqual(term2.term_outstanding, Decimal('5000'))
        self.assertEqual(term2.academic_year_outstanding, Decimal('5000'))

    def test_each_allocation_gets_a_receipt_with_before_and_after_balances(self):
        self.add_fee(self.term1, 10000)
        self.add_fee(self.term2, 10000)

        result = self.pay(15000)

        first, second = result.receipts_created
        self.assertEqual(first.academic_year_outstanding_before, Decimal('20000'))
        self.assertEqual(first.academic_year_outstanding_after, Decimal('10000'))
        self.assertEqual(first.term_outstanding_before, Decimal('10000'))
        self.assertEqual(first.term_outstanding_after, Decimal('0'))
        self.assertEqual(second.academic_year_outstanding_before, Decimal('10000'))
        self.assertEqual(second.academic_year_outstanding_after, Decimal('5000'))
        self.assertEqual(second.term_outstanding_after, Decimal('5000'))

        year = get_school_current_time().year
        self.assertEqual(
            [r.receipt_number for r in result.receipts_created],
            [f"RCP-{year}-000001", f"RCP-{year}-000002"],
        )
        self.assertEqual(Receipt.objects.filter(student=self.student).count(), 2)

    def test_allocations_share_reference_and_batch(self):
        self.add_fee(self.term1, 10000)
        self.add_fee(self.term2, 10000)

        result = self.pay(12000)

        references = {p.reference_number for p in result.payments_created}
        batches = {p.allocation_batch for p in result.payments_created}
        self.assertEqual(references, {f"PAY-{get_school_current_time().year}-000001"})
        self.assertEqual(len(batches), 1)

    def test_overpayment_is_kept_as_unallocated_credit(self):
        self.add_fee(self.term1, 10000)

        result = self.pay(13000)

        self.assertEqual(result.unallocated_amount, Decimal('3000'))
        self.assertEqual(sum(p.amount for p in result.payments_created), Decimal('13000'))
        overpayment = result.payments_created[-1]
        self.assertTrue(overpayment.is_overpayment)
        self.assertEqual(overpayment.amount, Decimal('3000'))

        balance = self.balances.get_student_balances(self.student, self.year)
        self.assertEqual(balance.academic_year_outstanding, Decimal('-3000'))
        self.assertTrue(
            FinancialAuditLog.objects.filter(action='OVERPAYMENT_RECORD', student_id=str(self.student.pk)).exists()
        )

    def test_default_start_is_earliest_unpaid_term(self):
        self.add_fee(self.term1, 10000)
        self.add_fee(self.term2, 10000)
        self.pay(10000)

        result = self.pay(4000)

        self.assertEqual(len(result.payments_created), 1)
        self.assertEqual(result.payments_created[0].term, self.term2)

    def test_paying_a_fully_paid_year_records_overpayment(self):
        self.add_fee(self.term1, 10000)
        self.pay(10000)

        result = self.pay(500)

        self.assertEqual(len(result.payments_created), 1)
        self.assertTrue(result.payments_created[0].is_overpayment)
        self.assertEqual(result.unallocated_amount, Decimal('500'))

    def test_missing_fee_structure_writes_nothing(self):
        with self.assertRaises(FeeStructureNotFound):
            self.pay(5000)

        self.assertFalse(Payment.objects.exists())
        self.assertFalse(Receipt.objects.exists())

    def test_starting_term_without_fee_structure_writes_nothing(self):
        self.add_fee(self.term1, 10000)

        with self.assertRaises(FeeStructureNotFound):
            self.pay(5000, starting_term=self.term2)

        self.assertFalse(Payment.objects.exists())

    def test_invalid_input_is_rejected_before_writing(self):
        self.add_fee(self.term1, 10000)

        for kwargs in (
            {'amount': '-50'},
            {'amount': 0},
            {'amount': 'ten thousand'},
            {'amount': 100, 'method': 'BITCOIN'},
            {'amount': 100, 'recorded_by': '  '},
        ):
            amount = kwargs.pop('amount')
            with self.subTest(amount=amount, **kwargs):
                with self.assertRaises(ValidationError):
                    self.pay(amount, **kwargs)

        self.assertFalse(Payment.objects.exists())

    def test_store_failure_rolls_back_the_whole_allocation(self):
        self.add_fee(self.term1, 10000)
        self.add_fee(self.term2, 10000)
        create_receipt = Receipt.objects.create
        calls = []

        def failing_second_receipt(**kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                raise DatabaseError('disk full')
            return create_receipt(**kwargs)

        with mock.patch.object(Receipt.objects, 'create', side_effect=failing_second_receipt):
            with self.assertRaises(DatabaseError):
                self.pay(15000)

        self.assertEqual(len(calls), 2)
        self.assertEqual(Payment.objects.count(), 0)
        self.assertEqual(Receipt.objects.count(), 0)
        self.assertEqual(
            self.balances.get_student_balances(self.student, self.year).academic_year_outstanding,
            Decimal('20000'),
        )

    def test_receipt_numbers_are_sequenced_per_school(self):
        self.add_fee(self.term1, 10000)
        other_school = make_school(code='MHS', name='Mombasa High School')
        other_year = make_academic_year(other_school, 2025, is_current=True, terms=1)
        other_grade = make_grades(other_school, levels=1)[0]
        other_student = make_student(other_school, make_class(other_school, other_grade))
        FeeStructureService.create_fee_structure(
            other_school, other_grade, other_year, get_term(other_year, 1),
            [{'name': 'Tuition', 'value': 5000}],
        )

        first = self.pay(100)
        second = self.service.apply_payment(other_student, 100, other_year, method='CASH', recorded_by='Bursar')

        year = get_school_current_time().year
        self.assertEqual(first.receipts_created[0].receipt_number, f"RCP-{year}-000001")
        self.assertEqual(second.receipts_created[0].receipt_number, f"RCP-{year}-000001")
        self.assertEqual(second.receipts_created[0].school, other_school)
        self.assertEqual(Receipt.objects.count(), 2)

    def test_payments_are_write_once(self):
        self.add_fee(self.term1, 10000)
        payment = self.pay(1000).payments_created[0]

        payment.amount = Decimal('1')
        with self.assertRaises(ValidationError):
            payment.save()
        with self.assertRaises(ValidationError):
            payment.delete()


class FeeStructureServiceTests(AllocationTestCase):

    def test_breakdown_items_are_stored_in_order(self):
        fee_structure = FeeStructureService.create_fee_structure(
            self.school, self.grade, self.year, self.term1,
            {'Tuition': '8000', 'Lunch': '1500', 'Books': 500},
        )

        self.assertEqual(fee_structure.total_amount, Decimal('10000'))
        self.assertEqual(
            list(fee_structure.items.order_by('order').values_list('name', flat=True)),
            ['Tuition', 'Lunch', 'Books'],
        )

    def test_total_must_match_breakdown(self):
        with self.assertRaises(ValidationError) as ctx:
            FeeStructureService.create_fee_structure(
                self.school, self.grade, self.year, self.term1,
                [{'name': 'Tuition', 'value': 8000}],
                total_amount=9000,
            )
        self.assertIn('total_amount', ctx.exception.message_dict)
        self.assertFalse(FeeStructure.objects.exists())

    def test_one_active_structure_per_grade_and_term(self):
        self.add_fee(self.term1, 10000)

        with self.assertRaises(ValidationError):
            self.add_fee(self.term1, 12000)

    def test_alumni_grade_cannot_be_billed(self):
        alumni = Grade.get_alumni_grade(self.school)

        with self.assertRaises(ValidationError):
            FeeStructureService.create_fee_structure(
                self.school, alumni, self.year, self.term1, [{'name': 'Tuition', 'value': 100}],
            )

    def test_total_is_locked_once_paid_against(self):
        fee_structure = self.add_fee(self.term1, 10000)
        self.pay(2000)

        fee_structure.total_amount = Decimal('12000')
        with self.assertRaises(ValidationError):
            fee_structure.save()
