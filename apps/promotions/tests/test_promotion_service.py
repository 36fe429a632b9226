from datetime import date
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase

from academics.models import ClassProgression, Grade
from core.exceptions import AllocationFailure
from discipline.models import DisciplinaryRecord
from fees.models import CarryForwardEntry, YearlyClosingBalance
from fees.services import BalanceService, FeeStructureService
from promotions.models import PromotionExclusion, PromotionLog
from promotions.services import EligibilityService, PromotionCriteriaService, PromotionService
from students.models import Alumni
from utils.tests.factories import (
    get_term,
    make_academic_year,
    make_class,
    make_grades,
    make_progress,
    make_school,
    make_student,
)


class PromotionTestCase(TestCase):

    def setUp(self):
        self.school = make_school()
        self.year_2025 = make_academic_year(self.school, 2025, is_current=True, terms=1)
        self.year_2026 = make_academic_year(self.school, 2026, terms=1)
        self.grades = make_grades(self.school, levels=6)
        self.grade1, self.grade2, self.grade6 = self.grades[0], self.grades[1], self.grades[5]
        self.class_1a = make_class(self.school, self.grade1, 'A')
        self.class_2a = make_class(self.school, self.grade2, 'A')
        self.class_6a = make_class(self.school, self.grade6, 'A')
        self.service = PromotionService()

    def promote(self, student, **kwargs):
        kwargs.setdefault('promoted_by', 'Head Teacher')
        return self.service.promote_student(student, self.year_2025, self.year_2026, **kwargs)

    def add_case(self, student, status='reported'):
        return DisciplinaryRecord.objects.create(
            student=student,
            academic_year=self.year_2025,
            incident_date=date(2025, 3, 14),
            incident_type='Fighting',
            record_status=status,
        )


class PromoteStudentTests(PromotionTestCase):

    def test_class_name_convention_picks_next_grade_same_section(self):
        student = make_student(self.school, self.class_1a)

        log = self.promote(student)

        student.refresh_from_db()
        self.assertEqual(student.current_class, self.class_2a)
        self.assertEqual(student.grade, self.grade2)
        self.assertEqual((log.from_class_name, log.to_class_name), ('Grade 1A', 'Grade 2A'))
        self.assertEqual(log.from_grade, self.grade1)
        self.assertFalse(log.is_graduation)
        self.assertFalse(log.is_manual_override)
        self.assertTrue(YearlyClosingBalance.objects.filter(student=student, academic_year=self.year_2025).exists())

    def test_terminal_student_with_balance_graduates_to_alumni(self):
        FeeStructureService.create_fee_structure(
            self.school, self.grade6, self.year_2025, get_term(self.year_2025, 1),
            [{'name': 'Tuition', 'value': 2000}],
        )
        PromotionCriteriaService.create_criteria(
            self.school, self.grade6, **PromotionCriteriaService.get_default_criteria()
        )
        student = make_student(self.school, self.class_6a)
        make_progress(student, self.year_2025, average_grade=64)

        log = self.promote(student)

        student.refresh_from_db()
        self.assertIsNone(student.current_class)
        self.assertFalse(student.is_active)
        self.assertEqual(student.enrollment_status, 'GRADUATED')
        self.assertEqual(student.grade, Grade.get_alumni_grade(self.school))
        self.assertTrue(student.is_alumni)

        alumni = Alumni.objects.get(student=student)
        self.assertEqual(alumni.graduation_year, 2025)
        self.assertEqual(alumni.final_class_name, 'Grade 6A')
        self.assertEqual(alumni.outstanding_balance, Decimal('2000'))

        self.assertTrue(log.is_graduation)
        self.assertIsNone(log.to_class)
        self.assertEqual(log.to_class_name, 'Alumni')
        self.assertEqual(log.criteria_snapshot['name'], 'Default Criteria')

        # the graduate's arrears still follow them
        self.assertEqual(CarryForwardEntry.objects.get(student=student).amount, Decimal('2000'))
        self.assertEqual(
            BalanceService().get_student_balances(student, self.year_2025).academic_year_outstanding,
            Decimal('2000'),
        )

    def test_ineligible_student_is_refused(self):
        PromotionCriteriaService.create_criteria(
            self.school, self.grade1, name='Conduct', max_disciplinary_cases=0
        )
        student = make_student(self.school, self.class_1a)
        self.add_case(student)
        self.add_case(student, status='dismissed')

        with self.assertRaises(AllocationFailure) as ctx:
            self.promote(student)

        self.assertEqual(ctx.exception.reason, '1 disciplinary cases exceed maximum 0')
        student.refresh_from_db()
        self.assertEqual(student.current_class, self.class_1a)

    def test_manual_override_promotes_ineligible_student(self):
        PromotionCriteriaService.create_criteria(
            self.school, self.grade1, name='Conduct', max_disciplinary_cases=0
        )
        student = make_student(self.school, self.class_1a)
        self.add_case(student)

        with self.assertRaises(ValidationError):
            self.promote(student, manual_override=True)

        log = self.promote(student, manual_override=True, override_reason='Case resolved by board')

        self.assertTrue(log.is_manual_override)
        self.assertEqual(log.override_reason, 'Case resolved by board')
        self.assertEqual(log.disciplinary_cases, 1)

    def test_class_progression_overrides_naming_convention(self):
        class_2b = make_class(self.school, self.grade2, 'B')
        ClassProgression.objects.create(school=self.school, from_class=self.class_1a, to_class=class_2b)
        student = make_student(self.school, self.class_1a)

        log = self.promote(student)

        self.assertEqual(log.to_class, class_2b)

    def test_year_specific_progression_beats_generic_rule(self):
        class_2b = make_class(self.school, self.grade2, 'B')
        ClassProgression.objects.create(school=self.school, from_class=self.class_1a, to_class=self.class_2a)
        ClassProgression.objects.create(
            school=self.school, from_class=self.class_1a, to_class=class_2b, from_academic_year=self.year_2025
        )
        student = make_student(self.school, self.class_1a)

        log = self.promote(student)

        self.assertEqual(log.to_class, class_2b)

    def test_progression_criteria_replaces_grade_criteria(self):
        PromotionCriteriaService.create_criteria(self.school, self.grade1, name='Strict', min_grade=90)
        lenient = PromotionCriteriaService.create_criteria(self.school, self.grade1, name='Lenient', min_grade=40)
        lenient.is_active = False
        lenient.save()
        ClassProgression.objects.create(
            school=self.school, from_class=self.class_1a, to_class=self.class_2a, criteria=lenient
        )
        student = make_student(self.school, self.class_1a)
        make_progress(student, self.year_2025, average_grade=55)

        log = self.promote(student)

        self.assertEqual(log.criteria_snapshot['name'], 'Lenient')

    def test_without_closing_year_no_snapshot_is_written(self):
        student = make_student(self.school, self.class_1a)

        self.promote(student, close_year=False)

        self.assertFalse(YearlyClosingBalance.objects.exists())

    def test_promotion_history_newest_first(self):
        student = make_student(self.school, self.class_1a)
        self.promote(student)

        history = self.service.get_promotion_history(student)

        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].to_class_name, 'Grade 2A')


class BulkPromotionTests(PromotionTestCase):

    def test_missing_target_class_excludes_student(self):
        class_1b = make_class(self.school, self.grade1, 'B')
        student = make_student(self.school, class_1b)

        result = self.service.execute_bulk_promotion(
            self.school, [student], self.year_2025, self.year_2026, promoted_by='Head Teacher'
        )

        self.assertEqual(result.promoted, [])
        self.assertEqual(
            result.excluded, [{'student_id': str(student.pk), 'reason': 'Target class "Grade 2B" does not exist'}]
        )
        exclusion = PromotionExclusion.objects.get(student=student)
        self.assertEqual(str(exclusion.batch_id), result.batch_id)
        student.refresh_from_db()
        self.assertEqual(student.current_class, class_1b)

    def test_one_bad_student_does_not_stop_the_batch(self):
        PromotionCriteriaService.create_criteria(
            self.school, self.grade1, name='Conduct', max_disciplinary_cases=0
        )
        good = make_student(self.school, self.class_1a, first_name='Amani')
        unruly = make_student(self.school, self.class_1a, first_name='Juma')
        self.add_case(unruly)
        stranded = make_student(self.school, make_class(self.school, self.grade1, 'C'), first_name='Neema')

        result = self.service.execute_bulk_promotion(
            self.school, [good, unruly, stranded], self.year_2025, self.year_2026
        )

        self.assertEqual(result.promoted, [str(good.pk)])
        self.assertEqual({e['student_id'] for e in result.excluded}, {str(unruly.pk), str(stranded.pk)})
        self.assertEqual(result.errors, [])
        self.assertEqual(PromotionExclusion.objects.filter(batch_id=result.batch_id).count(), 2)

    def test_store_failure_rolls_back_only_that_student(self):
        student = make_student(self.school, self.class_1a)

        with mock.patch.object(PromotionLog.objects, 'create', side_effect=RuntimeError('database unavailable')):
            result = self.service.execute_bulk_promotion(self.school, [student], self.year_2025, self.year_2026)

        self.assertEqual(result.promoted, [])
        self.assertEqual(len(result.errors), 1)
        self.assertIn('database unavailable', result.errors[0])
        student.refresh_from_db()
        self.assertEqual(student.current_class, self.class_1a)
        self.assertFalse(YearlyClosingBalance.objects.exists())

    def test_alumni_are_excluded_from_later_runs(self):
        student = make_student(self.school, self.class_6a)
        self.service.execute_bulk_promotion(self.school, [student], self.year_2025, self.year_2026)
        student.refresh_from_db()

        result = self.service.execute_bulk_promotion(self.school, [student], self.year_2026)

        self.assertEqual(result.excluded, [{'student_id': str(student.pk), 'reason': 'Student is already an alumnus'}])
        self.assertEqual(Alumni.objects.filter(student=student).count(), 1)

    def test_students_can_be_passed_by_id(self):
        student = make_student(self.school, self.class_1a)

        result = self.service.execute_bulk_promotion(
            self.school, [student.pk, '00000000-0000-0000-0000-000000000000'], self.year_2025, self.year_2026
        )

        self.assertEqual(result.promoted, [str(student.pk)])
        self.assertEqual(result.errors, ['Student 00000000-0000-0000-0000-000000000000 not found'])

    def test_promote_school_reports_graduates(self):
        junior = make_student(self.school, self.class_1a)
        senior = make_student(self.school, self.class_6a)

        result = self.service.promote_school(self.school, self.year_2025, self.year_2026)

        self.assertEqual(set(result.promoted), {str(junior.pk), str(senior.pk)})
        self.assertEqual(result.graduated, [str(senior.pk)])
        self.assertEqual(
            set(PromotionLog.objects.filter(batch_id=result.batch_id).values_list('promotion_type', flat=True)),
            {'school'},
        )
        self.assertEqual(result.as_dict()['excluded'], [])

    def test_promote_class(self):
        first = make_student(self.school, self.class_1a)
        second = make_student(self.school, self.class_1a, first_name='Zawadi')

        result = self.service.promote_class(self.class_1a, self.year_2025, self.year_2026)

        self.assertEqual(set(result.promoted), {str(first.pk), str(second.pk)})
        self.assertEqual(self.class_2a.students.count(), 2)

    def test_validate_promotion_targets(self):
        make_student(self.school, self.class_1a)
        make_student(self.school, make_class(self.school, self.grade1, 'B'))

        errors = self.service.validate_promotion_targets(self.school, self.year_2025)

        self.assertEqual(errors, ['Grade 1B: Target class "Grade 2B" does not exist'])

    def test_promote_students_command(self):
        make_student(self.school, self.class_1a)
        out = StringIO()

        call_command('promote_students', 'KPS', '2025', stdout=out)

        self.assertIn('1 promoted', out.getvalue())


class CriteriaServiceTests(PromotionTestCase):

    def test_default_criteria(self):
        defaults = PromotionCriteriaService.get_default_criteria()

        self.assertEqual(
            (defaults['min_grade'], defaults['max_fee_balance'], defaults['max_disciplinary_cases']),
            (50, 0, 0),
        )

    def test_create_with_items(self):
        criteria = PromotionCriteriaService.create_criteria(
            self.school, self.grade1, name='Custom', priority=2,
            items=[
                {'type': 'grade', 'limit': 55, 'unit': '%'},
                {'type': 'fee_balance', 'limit': 0, 'isRequired': True},
                {'type': 'custom', 'name': 'Reading Level', 'limit': 3},
            ],
        )

        self.assertEqual(criteria.version, 1)
        self.assertEqual(
            list(criteria.items.order_by('order').values_list('kind', flat=True)),
            ['grade', 'fee_balance', 'custom'],
        )
        criteria_set = criteria.to_criteria_set()
        self.assertEqual(len(criteria_set.items), 3)
        self.assertTrue(criteria_set.items[1].is_required)

    def test_invalid_criteria_are_rejected_before_writing(self):
        for kwargs in (
            {'name': 'Negative', 'items': [{'type': 'grade', 'limit': -5}]},
            {'name': 'Empty'},
            {'name': '', 'min_grade': 50},
            {'name': 'Unknown', 'items': [{'type': 'sports', 'limit': 1}]},
        ):
            with self.subTest(**{k: str(v) for k, v in kwargs.items()}):
                with self.assertRaises(ValidationError):
                    PromotionCriteriaService.create_criteria(self.school, self.grade1, **kwargs)

        self.assertFalse(self.grade1.promotion_criteria.exists())

    def test_update_bumps_version_and_replaces_items(self):
        criteria = PromotionCriteriaService.create_criteria(self.school, self.grade1, name='Standard', min_grade=50)

        PromotionCriteriaService.update_criteria(
            criteria, items=[{'kind': 'attendance', 'limit': 75}], priority=3
        )

        criteria.refresh_from_db()
        self.assertEqual(criteria.version, 2)
        self.assertEqual(criteria.priority, 3)
        self.assertEqual([i.kind for i in criteria.to_criteria_set().items], ['attendance'])

    def test_deactivated_criteria_are_ignored(self):
        criteria = PromotionCriteriaService.create_criteria(self.school, self.grade1, name='Strict', min_grade=95)

        PromotionCriteriaService.deactivate_criteria(criteria)

        self.assertEqual(PromotionCriteriaService.get_criteria_for_grade(self.grade1), [])


class EligibilityServiceTests(PromotionTestCase):

    def test_collect_metrics(self):
        student = make_student(self.school, self.class_1a)
        make_progress(student, self.year_2025, average_grade=68.5, total_school_days=200, days_attended=170,
                      subjects_failed=1)
        self.add_case(student)
        self.add_case(student, status='dismissed')

        metrics = EligibilityService().collect_metrics(student, self.year_2025)

        self.assertEqual(metrics.average_grade, Decimal('68.5'))
        self.assertEqual(metrics.attendance_rate, Decimal('85.00'))
        self.assertEqual(metrics.disciplinary_cases, 1)
        self.assertEqual(metrics.subject_failures, 1)
        self.assertEqual(metrics.fee_balance, Decimal('0'))

    def test_class_eligibility_report(self):
        PromotionCriteriaService.create_criteria(self.school, self.grade1, name='Standard', min_grade=50)
        passing = make_student(self.school, self.class_1a, first_name='Imani')
        failing = make_student(self.school, self.class_1a, first_name='Tumaini')
        make_progress(passing, self.year_2025, average_grade=70)
        make_progress(failing, self.year_2025, average_grade=45)

        rows = {r['student_id']: r for r in EligibilityService().get_class_eligibility(self.class_1a, self.year_2025)}

        self.assertTrue(rows[str(passing.pk)]['is_eligible'])
        self.assertEqual(rows[str(passing.pk)]['primary_criteria'], 'Standard')
        self.assertFalse(rows[str(failing.pk)]['is_eligible'])
        self.assertEqual(rows[str(failing.pk)]['reason'], 'Grade 45% below minimum 50%')
