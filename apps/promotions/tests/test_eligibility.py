from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from promotions.eligibility import (
    CriteriaSet,
    StudentMetrics,
    build_item,
    evaluate_eligibility,
    items_from_thresholds,
)


def make_set(name, priority=1, **thresholds):
    return CriteriaSet(name=name, priority=priority, items=tuple(items_from_thresholds(**thresholds)))


def test_no_criteria_means_everyone_is_eligible():
    result = evaluate_eligibility(StudentMetrics(average_grade=Decimal('10'), fee_balance=Decimal('90000')), [])

    assert result.is_eligible
    assert result.is_default
    assert result.primary is None


def test_failing_one_set_but_passing_another_is_eligible():
    metrics = StudentMetrics(average_grade=Decimal('75'), fee_balance=Decimal('500'))
    strict = make_set('Strict', priority=1, min_grade=50, max_fee_balance=0)
    academic = make_set('Academic Only', priority=2, min_grade=50)

    result = evaluate_eligibility(metrics, [strict, academic])

    assert result.is_eligible
    assert result.primary.name == 'Academic Only'
    strict_result = result.per_criteria_results[0]
    assert not strict_result.passed
    assert strict_result.reasons == ['Fee balance 500.00 exceeds maximum 0.00']


def test_first_passing_set_in_priority_order_is_primary():
    metrics = StudentMetrics(average_grade=Decimal('80'))
    low = make_set('Low Bar', priority=5, min_grade=40)
    high = make_set('High Bar', priority=1, min_grade=70)

    result = evaluate_eligibility(metrics, [low, high])

    assert result.primary.name == 'High Bar'
    assert [r.name for r in result.per_criteria_results] == ['High Bar', 'Low Bar']


def test_every_failure_reason_is_kept_when_no_set_passes():
    metrics = StudentMetrics(
        average_grade=Decimal('45'),
        fee_balance=Decimal('1200'),
        attendance_rate=Decimal('70'),
        disciplinary_cases=2,
    )
    strict = make_set('Strict', min_grade=50, max_fee_balance=0, max_disciplinary_cases=0, min_attendance=80)
    lenient = make_set('Lenient', priority=2, min_grade=48)

    result = evaluate_eligibility(metrics, [strict, lenient])

    assert not result.is_eligible
    assert result.primary is None
    assert result.failure_reasons == [
        'Grade 45% below minimum 50%',
        'Fee balance 1,200.00 exceeds maximum 0.00',
        '2 disciplinary cases exceed maximum 0',
        'Attendance 70% below minimum 80%',
        'Grade 45% below minimum 48%',
    ]
    assert result.reason.startswith('Grade 45% below minimum 50%, ')


def test_require_all_needs_every_set_to_pass():
    metrics = StudentMetrics(average_grade=Decimal('75'), fee_balance=Decimal('500'))
    sets = [make_set('Strict', min_grade=50, max_fee_balance=0), make_set('Academic Only', priority=2, min_grade=50)]

    result = evaluate_eligibility(metrics, sets, require_all=True)

    assert not result.is_eligible


def test_skipped_kinds_are_not_evaluated():
    metrics = StudentMetrics(average_grade=Decimal('60'), fee_balance=Decimal('2000'))
    sets = [make_set('Standard', min_grade=50, max_fee_balance=0)]

    result = evaluate_eligibility(metrics, sets, skip_kinds=('fee_balance',))

    assert result.is_eligible
    assert [r.kind for r in result.primary.item_results] == ['grade']


def test_fee_item_full_payment_required():
    item = build_item('fee_balance', limit=1000, is_required=True)

    assert not item.evaluate(StudentMetrics(fee_balance=Decimal('1'))).passed
    assert item.evaluate(StudentMetrics(fee_balance=Decimal('-300'))).passed


def test_disciplinary_clean_record_required():
    item = build_item('disciplinary', limit=3, is_required=True)

    result = item.evaluate(StudentMetrics(disciplinary_cases=1))

    assert not result.passed
    assert result.reason == '1 disciplinary cases; clean record required'


def test_missing_grade_fails_grade_item():
    result = build_item('grade', limit=50).evaluate(StudentMetrics())

    assert not result.passed
    assert result.reason == 'No grade recorded (minimum 50%)'


def test_subject_failures_item():
    item = build_item('subject_failures', limit=1)

    assert item.evaluate(StudentMetrics(subject_failures=1)).passed
    assert item.evaluate(StudentMetrics(subject_failures=3)).reason == '3 subject failures exceed maximum 1'


def test_custom_item_reads_named_metric():
    item = build_item('custom', limit=60, name='Mathematics', unit='%')

    assert item.evaluate(StudentMetrics(custom={'Mathematics': 72})).passed
    assert not item.evaluate(StudentMetrics(custom={'Mathematics': 41})).passed
    assert item.evaluate(StudentMetrics()).passed
    assert not build_item('custom', limit=60, name='Mathematics', is_required=True).evaluate(StudentMetrics()).passed


def test_zero_limits_are_valid():
    items = items_from_thresholds(min_grade=0, max_fee_balance=0, max_disciplinary_cases=0)

    assert [item.kind for item in items] == ['grade', 'fee_balance', 'disciplinary']


@pytest.mark.parametrize('kind, limit, extra', [
    ('grade', -1, {}),
    ('grade', 101, {}),
    ('attendance', 150, {}),
    ('fee_balance', 'lots', {}),
    ('fee_balance', None, {}),
    ('disciplinary', -2, {}),
    ('custom', 10, {'name': ''}),
    ('homework', 10, {}),
])
def test_invalid_items_are_rejected(kind, limit, extra):
    with pytest.raises(ValidationError):
        build_item(kind, limit, **extra)


def test_item_as_dict_round_trips_through_build_item():
    item = build_item('attendance', limit='85.5', unit='%')

    assert build_item(**item.as_dict()) == item
