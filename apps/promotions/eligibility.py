# promotions/eligibility.py

"""
Promotion Eligibility Evaluator

Pure evaluation of a student's metrics against promotion criteria sets.

- Items inside a set are ANDed
- Sets are tried in priority order; the first passing set makes the student
  eligible and is reported as the primary result
- No configured sets means every student is eligible (manual promotion)
- ``require_all=True`` switches to every-set-must-pass
"""

import logging
from dataclasses import dataclass, field, asdict
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.core.exceptions import ValidationError

from core.utils import ZERO

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


def _fmt(value):
    """45.00 -> '45', 45.50 -> '45.5'"""
    value = Decimal(str(value))
    if value == value.to_integral_value():
        return str(value.quantize(Decimal('1')))
    return f"{value.normalize():f}"


def _money(value):
    return f"{Decimal(str(value)):,.2f}"


@dataclass(frozen=True)
class StudentMetrics:
    average_grade: Optional[Decimal] = None
    fee_balance: Decimal = ZERO
    attendance_rate: Optional[Decimal] = None
    disciplinary_cases: int = 0
    subject_failures: int = 0
    custom: dict = field(default_factory=dict)

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class ItemResult:
    kind: str
    name: str
    passed: bool
    actual: object
    limit: Decimal
    reason: str = ''

    def as_dict(self):
        return asdict(self)


# =============================================================================
# CRITERIA ITEMS
# =============================================================================

@dataclass(frozen=True)
class CriteriaItem:
    """Base for the closed set of item kinds. ``limit`` is validated on construction."""

    limit: Decimal
    name: str = ''
    unit: str = ''
    is_required: bool = False

    kind = None
    max_limit = None

    def __post_init__(self):
        try:
            limit = Decimal(str(self.limit))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError({'limit': f"Invalid limit for {self.kind} criterion: {self.limit!r}"})
        if not limit.is_finite() or limit < 0:
            raise ValidationError({'limit': f"Limit for {self.kind} criterion must be zero or more"})
        if self.max_limit is not None and limit > self.max_limit:
            raise ValidationError({'limit': f"Limit for {self.kind} criterion cannot exceed {self.max_limit}"})
        object.__setattr__(self, 'limit', limit)

    def evaluate(self, metrics):
        raise NotImplementedError

    def _result(self, passed, actual, reason=''):
        return ItemResult(
            kind=self.kind,
            name=self.name or self.kind,
            passed=passed,
            actual=actual,
            limit=self.limit,
            reason='' if passed else reason,
        )

    def as_dict(self):
        return {
            'kind': self.kind,
            'name': self.name,
            'limit': str(self.limit),
            'unit': self.unit,
            'is_required': self.is_required,
        }


@dataclass(frozen=True)
class GradeItem(CriteriaItem):
    kind = 'grade'
    max_limit = HUNDRED

    def evaluate(self, metrics):
        grade = metrics.average_grade
        if grade is None:
            return self._result(False, None, f"No grade recorded (minimum {_fmt(self.limit)}%)")
        return self._result(
            Decimal(str(grade)) >= self.limit,
            grade,
            f"Grade {_fmt(grade)}% below minimum {_fmt(self.limit)}%",
        )


@dataclass(frozen=True)
class FeeBalanceItem(CriteriaItem):
    """``is_required`` means full payment: the balance must be zero or in credit."""

    kind = 'fee_balance'

    def evaluate(self, metrics):
        balance = Decimal(str(metrics.fee_balance))
        if self.is_required:
            return self._result(
                balance <= 0,
                balance,
                f"Fee balance {_money(balance)} outstanding; full payment required",
            )
        return self._result(
            balance <= self.limit,
            balance,
            f"Fee balance {_money(balance)} exceeds maximum {_money(self.limit)}",
        )


@dataclass(frozen=True)
class AttendanceItem(CriteriaItem):
    kind = 'attendance'
    max_limit = HUNDRED

    def evaluate(self, metrics):
        rate = metrics.attendance_rate
        if rate is None:
            return self._result(False, None, f"No attendance recorded (minimum {_fmt(self.limit)}%)")
        return self._result(
            Decimal(str(rate)) >= self.limit,
            rate,
            f"Attendance {_fmt(rate)}% below minimum {_fmt(self.limit)}%",
        )


@dataclass(frozen=True)
class DisciplinaryItem(CriteriaItem):
    """``is_required`` means a clean record: no cases at all."""

    kind = 'disciplinary'

    def evaluate(self, metrics):
        cases = metrics.disciplinary_cases
        if self.is_required:
            return self._result(cases == 0, cases, f"{cases} disciplinary cases; clean record required")
        return self._result(
            cases <= self.limit,
            cases,
            f"{cases} disciplinary cases exceed maximum {_fmt(self.limit)}",
        )


@dataclass(frozen=True)
class SubjectFailuresItem(CriteriaItem):
    kind = 'subject_failures'

    def evaluate(self, metrics):
        failures = metrics.subject_failures
        return self._result(
            failures <= self.limit,
            failures,
            f"{failures} subject failures exceed maximum {_fmt(self.limit)}",
        )


@dataclass(frozen=True)
class CustomItem(CriteriaItem):
    """
    A school-defined minimum read from ``metrics.custom[name]``.
    A missing value passes unless the item is required.
    """

    kind = 'custom'

    def __post_init__(self):
        super().__post_init__()
        if not (self.name or '').strip():
            raise ValidationError({'name': 'Custom criteria need a name'})

    def evaluate(self, metrics):
        value = metrics.custom.get(self.name)
        if value is None:
            return self._result(not self.is_required, None, f"{self.name}: no value recorded")
        return self._result(
            Decimal(str(value)) >= self.limit,
            value,
            f"{self.name} {_fmt(value)}{self.unit} below minimum {_fmt(self.limit)}{self.unit}",
        )


ITEM_KINDS = {
    item_class.kind: item_class
    for item_class in (GradeItem, FeeBalanceItem, AttendanceItem, DisciplinaryItem, SubjectFailuresItem, CustomItem)
}


def build_item(kind, limit, name='', unit='', is_required=False):
    """
    Construct a criteria item of the given kind.

    Raises:
        ValidationError: Unknown kind, missing or invalid limit
    """
    item_class = ITEM_KINDS.get(kind)
    if item_class is None:
        raise ValidationError({'kind': f"Unknown criteria type: {kind!r}"})
    if limit is None or limit == '':
        raise ValidationError({'limit': f"A limit is required for {kind} criteria"})
    return item_class(limit=limit, name=name or '', unit=unit or '', is_required=bool(is_required))


def items_from_thresholds(min_grade=None, max_fee_balance=None, max_disciplinary_cases=None, min_attendance=None):
    """Items for the structured threshold form of a criteria set; unset thresholds are skipped."""
    items = []
    if min_grade is not None:
        items.append(GradeItem(limit=min_grade, unit='%'))
    if max_fee_balance is not None:
        items.append(FeeBalanceItem(limit=max_fee_balance))
    if max_disciplinary_cases is not None:
        items.append(DisciplinaryItem(limit=max_disciplinary_cases, unit='cases'))
    if min_attendance is not None:
        items.append(AttendanceItem(limit=min_attendance, unit='%'))
    return items


# =============================================================================
# CRITERIA SETS
# =============================================================================

@dataclass(frozen=True)
class CriteriaResult:
    name: str
    priority: int
    passed: bool
    item_results: tuple
    criteria_id: Optional[str] = None

    @property
    def reasons(self):
        return [r.reason for r in self.item_results if not r.passed]

    def as_dict(self):
        return {
            'criteria_id': self.criteria_id,
            'name': self.name,
            'priority': self.priority,
            'passed': self.passed,
            'items': [r.as_dict() for r in self.item_results],
        }


@dataclass(frozen=True)
class CriteriaSet:
    name: str
    priority: int
    items: tuple
    criteria_id: Optional[str] = None
    version: int = 1

    def evaluate(self, metrics, skip_kinds=()):
        results = tuple(item.evaluate(metrics) for item in self.items if item.kind not in skip_kinds)
        return CriteriaResult(
            name=self.name,
            priority=self.priority,
            passed=all(r.passed for r in results),
            item_results=results,
            criteria_id=self.criteria_id,
        )


@dataclass(frozen=True)
class EligibilityResult:
    is_eligible: bool
    primary: Optional[CriteriaResult]
    per_criteria_results: tuple
    is_default: bool = False

    @property
    def failure_reasons(self):
        reasons = []
        for result in self.per_criteria_results:
            reasons.extend(result.reasons)
        return reasons

    @property
    def reason(self):
        if self.is_default:
            return 'No promotion criteria configured'
        if self.is_eligible:
            return f"Meets {self.primary.name}" if self.primary else 'Meets all criteria'
        return ', '.join(self.failure_reasons) or 'Does not meet promotion criteria'

    def as_dict(self):
        return {
            'is_eligible': self.is_eligible,
            'is_default': self.is_default,
            'primary': self.primary.name if self.primary else None,
            'reason': self.reason,
            'per_criteria_results': [r.as_dict() for r in self.per_criteria_results],
        }


def evaluate_eligibility(metrics, criteria_sets, require_all=False, skip_kinds=()):
    """
    Evaluate a student's metrics against every criteria set.

    Args:
        metrics: StudentMetrics
        criteria_sets: CriteriaSet iterable
        require_all: Every set must pass instead of any one
        skip_kinds: Item kinds to ignore (fee_balance for graduating students)

    Returns:
        EligibilityResult
    """
    ordered = sorted(criteria_sets, key=lambda s: s.priority)
    if not ordered:
        return EligibilityResult(is_eligible=True, primary=None, per_criteria_results=(), is_default=True)

    results = tuple(criteria_set.evaluate(metrics, skip_kinds) for criteria_set in ordered)

    if require_all:
        eligible = all(r.passed for r in results)
        primary = results[0] if eligible else None
    else:
        primary = next((r for r in results if r.passed), None)
        eligible = primary is not None

    return EligibilityResult(is_eligible=eligible, primary=primary, per_criteria_results=results)
