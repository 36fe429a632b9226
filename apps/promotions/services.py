# promotions/services.py

"""
Promotion services.

- PromotionCriteriaService: create, version and retire criteria sets
- EligibilityService: gather a student's metrics and evaluate them
- PromotionService: move students to their next class, or to Alumni
"""

import logging
import uuid
from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from academics.models import AcademicProgress, Class, ClassProgression, Grade
from academics.utils import next_class_name
from core.exceptions import AllocationFailure, NotFound, TargetClassNotFound
from core.utils import get_school_current_time, get_school_today
from discipline.models import DisciplinaryRecord
from fees.services import BalanceService, YearTransitionService
from promotions.eligibility import (
    StudentMetrics,
    build_item,
    evaluate_eligibility,
    items_from_thresholds,
)
from promotions.models import CriteriaItem, PromotionCriteria, PromotionExclusion, PromotionLog
from students.models import Alumni, Student
from utils.audit import log_financial_activity

logger = logging.getLogger(__name__)


# =============================================================================
# CRITERIA
# =============================================================================

class PromotionCriteriaService:

    THRESHOLD_FIELDS = ('min_grade', 'max_fee_balance', 'max_disciplinary_cases', 'min_attendance')

    @staticmethod
    def get_default_criteria():
        """Thresholds offered when a school sets up promotion for the first time."""
        return {
            'name': 'Default Criteria',
            'priority': 1,
            'min_grade': 50,
            'max_fee_balance': 0,
            'max_disciplinary_cases': 0,
        }

    @staticmethod
    def _build_items(items):
        """
        Validate item dicts ({kind|type, limit, name, unit, is_required|isRequired})
        into evaluator items.
        """
        built = []
        for data in items or []:
            built.append(build_item(
                kind=data.get('kind') or data.get('type'),
                limit=data.get('limit'),
                name=data.get('name', ''),
                unit=data.get('unit', ''),
                is_required=data.get('is_required', data.get('isRequired', False)),
            ))
        return built

    @classmethod
    def _validate(cls, name, grade, items, thresholds):
        errors = {}
        if not (name or '').strip():
            errors['name'] = 'This field is required'
        if grade.is_alumni:
            errors['grade'] = 'Promotion criteria cannot be set for the Alumni grade'
        if errors:
            raise ValidationError(errors)

        built = cls._build_items(items)
        built.extend(items_from_thresholds(**thresholds))
        if not built:
            raise ValidationError({'items': 'At least one criterion is required'})
        return built

    @staticmethod
    def _replace_items(criteria, items):
        criteria.items.all().delete()
        CriteriaItem.objects.bulk_create([
            CriteriaItem(
                criteria=criteria,
                kind=item.kind,
                name=item.name,
                limit=item.limit,
                unit=item.unit,
                is_required=item.is_required,
                order=index,
                created_at=criteria.updated_at,
                updated_at=criteria.updated_at,
            )
            for index, item in enumerate(items)
        ])

    @classmethod
    @transaction.atomic
    def create_criteria(cls, school, grade, name, priority=1, items=None, description='',
                        created_by=None, **thresholds):
        """
        Create a criteria set for a grade.

        Args:
            items: list of item dicts; alternatively pass the thresholds
                min_grade, max_fee_balance, max_disciplinary_cases, min_attendance

        Raises:
            ValidationError: Before anything is written
        """
        unknown = set(thresholds) - set(cls.THRESHOLD_FIELDS)
        if unknown:
            raise ValidationError({field_name: 'Unknown criteria field' for field_name in unknown})
        if grade.school_id != school.pk:
            raise ValidationError({'grade': 'Grade must belong to the school'})

        cls._validate(name, grade, items, thresholds)
        item_objects = cls._build_items(items)

        criteria = PromotionCriteria.objects.create(
            school=school,
            grade=grade,
            name=name.strip(),
            description=description,
            priority=priority,
            created_by_id=created_by,
            **thresholds,
        )
        cls._replace_items(criteria, item_objects)
        logger.info(f"Created promotion criteria '{criteria.name}' for {grade} (priority {priority})")
        return criteria

    @classmethod
    @transaction.atomic
    def update_criteria(cls, criteria, items=None, updated_by=None, **changes):
        """
        Update a criteria set and bump its version.
        Promotion logs keep the snapshot of the version they were evaluated against.
        """
        allowed = {'name', 'description', 'priority', 'is_active', *cls.THRESHOLD_FIELDS}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError({field_name: 'Unknown criteria field' for field_name in unknown})

        thresholds = {
            f: changes.get(f, getattr(criteria, f)) for f in cls.THRESHOLD_FIELDS
        }
        if items is None:
            items = [item.to_item().as_dict() for item in criteria.items.all()]
        cls._validate(changes.get('name', criteria.name), criteria.grade, items, thresholds)

        for field_name, value in changes.items():
            setattr(criteria, field_name, value)
        criteria.version += 1
        criteria.updated_by_id = updated_by
        criteria.save()
        cls._replace_items(criteria, cls._build_items(items))

        logger.info(f"Updated promotion criteria '{criteria.name}' to version {criteria.version}")
        return criteria

    @staticmethod
    def deactivate_criteria(criteria, updated_by=None):
        criteria.is_active = False
        criteria.updated_by_id = updated_by
        criteria.save(update_fields=['is_active', 'updated_by_id', 'updated_at'])
        logger.info(f"Deactivated promotion criteria '{criteria.name}'")
        return criteria

    @staticmethod
    def get_criteria_for_grade(grade):
        return list(
            PromotionCriteria.objects.filter(grade=grade, is_active=True)
            .prefetch_related('items')
            .order_by('priority', 'created_at')
        )


# =============================================================================
# ELIGIBILITY
# =============================================================================

class EligibilityService:

    def __init__(self, balance_service=None):
        self.balances = balance_service or BalanceService()

    def collect_metrics(self, student, academic_year):
        progress = AcademicProgress.objects.filter(student=student, academic_year=academic_year).first()
        fee_balance = self.balances.get_student_balances(student, academic_year).academic_year_outstanding

        return StudentMetrics(
            average_grade=progress.average_grade if progress else None,
            fee_balance=fee_balance,
            attendance_rate=progress.attendance_rate if progress else None,
            disciplinary_cases=DisciplinaryRecord.count_cases(student, academic_year),
            subject_failures=progress.subjects_failed if progress else 0,
        )

    def evaluate_student(self, student, academic_year, criteria=None, is_graduation=False):
        """
        Args:
            criteria: PromotionCriteria list; defaults to the active sets of the student's grade
            is_graduation: Skip fee items when graduating students are not held back by fees

        Returns:
            tuple: (EligibilityResult, StudentMetrics)
        """
        if criteria is None:
            criteria = PromotionCriteriaService.get_criteria_for_grade(student.grade)
        bursar = settings.BURSAR

        skip_kinds = ()
        if is_graduation and bursar.get('TERMINAL_PROMOTION_IGNORES_FEES', True):
            skip_kinds = ('fee_balance',)

        metrics = self.collect_metrics(student, academic_year)
        result = evaluate_eligibility(
            metrics,
            [c.to_criteria_set() for c in criteria],
            require_all=bursar.get('REQUIRE_ALL_CRITERIA_SETS', False),
            skip_kinds=skip_kinds,
        )
        return result, metrics

    def get_class_eligibility(self, class_instance, academic_year):
        """
        Returns:
            list[dict]: one row per active student of the class
        """
        criteria = PromotionCriteriaService.get_criteria_for_grade(class_instance.grade)
        is_graduation = class_instance.grade.is_terminal
        rows = []
        students = class_instance.students.filter(is_active=True).select_related('school', 'grade')
        for student in students:
            result, metrics = self.evaluate_student(
                student, academic_year, criteria=criteria, is_graduation=is_graduation
            )
            rows.append({
                'student_id': str(student.pk),
                'student_name': student.get_full_name(),
                'admission_number': student.admission_number,
                'is_eligible': result.is_eligible,
                'primary_criteria': result.primary.name if result.primary else None,
                'reason': result.reason,
                'metrics': metrics.as_dict(),
            })
        return rows


# =============================================================================
# PROMOTION
# =============================================================================

@dataclass
class PromotionResult:
    batch_id: str
    promoted: list = field(default_factory=list)
    graduated: list = field(default_factory=list)
    excluded: list = field(default_factory=list)
    errors: list = field(default_factory=list)

    @property
    def success(self):
        return not self.errors

    def as_dict(self):
        return {
            'batch_id': self.batch_id,
            'promoted': self.promoted,
            'graduated': self.graduated,
            'excluded': self.excluded,
            'errors': self.errors,
        }


class PromotionService:

    def __init__(self, eligibility_service=None, year_transition_service=None):
        self.eligibility = eligibility_service or EligibilityService()
        self.year_transition = year_transition_service or YearTransitionService()

    # -------------------------------------------------------------------------
    # Targets
    # -------------------------------------------------------------------------

    def resolve_target(self, student, from_year=None):
        """
        Where a student in ``current_class`` goes next.

        A configured ClassProgression wins (a year-specific rule over a generic
        one); otherwise the terminal grade goes to Alumni and every other class
        to the class named one grade up with the same section.

        Returns:
            tuple: (target Class or None, to_alumni, ClassProgression or None)

        Raises:
            AllocationFailure: Student has no class
            TargetClassNotFound: The next class does not exist
        """
        current_class = student.current_class
        if current_class is None:
            raise AllocationFailure('Student has no class assigned')

        rules = ClassProgression.objects.filter(from_class=current_class, is_active=True)
        if from_year is not None:
            rules = rules.filter(Q(from_academic_year=from_year) | Q(from_academic_year__isnull=True))
        else:
            rules = rules.filter(from_academic_year__isnull=True)
        rules = sorted(
            rules.select_related('to_class', 'criteria'),
            key=lambda r: (r.from_academic_year_id is None, r.order),
        )
        if rules:
            rule = rules[0]
            return rule.to_class, rule.to_alumni, rule

        if current_class.grade.is_terminal:
            return None, True, None

        target_name = next_class_name(current_class.name)
        if target_name is None:
            raise TargetClassNotFound(f'No next class can be derived from "{current_class.name}"')

        target = Class.objects.filter(school_id=current_class.school_id, name=target_name, is_active=True).first()
        if target is None:
            raise TargetClassNotFound(f'Target class "{target_name}" does not exist')
        return target, False, None

    def validate_promotion_targets(self, school, from_year=None):
        """
        Check every active class with students has somewhere to go.

        Returns:
            list[str]: One message per class without a target
        """
        errors = []
        classes = Class.objects.filter(
            school=school, is_active=True, students__is_active=True
        ).select_related('grade').distinct()
        for class_instance in classes:
            probe = Student(school=school, current_class=class_instance, grade=class_instance.grade)
            try:
                self.resolve_target(probe, from_year)
            except (TargetClassNotFound, AllocationFailure) as e:
                errors.append(f"{class_instance.name}: {e}")
        return errors

    # -------------------------------------------------------------------------
    # Single student
    # -------------------------------------------------------------------------

    def promote_student(self, student, from_year, to_year=None, promoted_by='System', promotion_type='single',
                        batch_id=None, manual_override=False, override_reason='', notes='', close_year=True):
        """
        Promote one student.

        The year is closed (balance carried forward) before the student's
        grade changes, so the closing is computed against the fees they were
        billed. Terminal-grade students become Alumni.

        Returns:
            PromotionLog

        Raises:
            AllocationFailure: Already an alumnus, or not eligible without an override
            TargetClassNotFound: The next class does not exist
            ValidationError: Override without a reason
        """
        if manual_override and not (override_reason or '').strip():
            raise ValidationError({'override_reason': 'A reason is required for a manual override'})
        if student.is_alumni or Alumni.objects.filter(student=student).exists():
            raise AllocationFailure('Student is already an alumnus')

        target, to_alumni, rule = self.resolve_target(student, from_year)
        criteria = [rule.criteria] if rule is not None and rule.criteria is not None else None

        eligibility, metrics = self.eligibility.evaluate_student(
            student, from_year, criteria=criteria, is_graduation=to_alumni
        )
        if not eligibility.is_eligible and not manual_override:
            raise AllocationFailure(eligibility.reason)

        if criteria is None:
            criteria = PromotionCriteriaService.get_criteria_for_grade(student.grade)

        with transaction.atomic():
            log = self._apply_promotion(
                student, from_year, to_year, target, to_alumni, metrics, eligibility, criteria,
                promoted_by=promoted_by,
                promotion_type=promotion_type,
                batch_id=batch_id or uuid.uuid4(),
                manual_override=manual_override and not eligibility.is_eligible,
                override_reason=override_reason,
                notes=notes,
                close_year=close_year,
            )
        return log

    def _apply_promotion(self, student, from_year, to_year, target, to_alumni, metrics, eligibility, criteria,
                         promoted_by, promotion_type, batch_id, manual_override, override_reason, notes, close_year):
        from_class = student.current_class
        from_grade = student.grade

        if close_year:
            self.year_transition.close_student_year(student, from_year, to_year, recorded_by=promoted_by)

        if to_alumni:
            to_grade = Grade.get_alumni_grade(student.school)
            graduation_date = get_school_today()
            student.current_class = None
            student.grade = to_grade
            student.is_active = False
            student.enrollment_status = 'GRADUATED'
            student.graduation_date = graduation_date
            Alumni.objects.create(
                school=student.school,
                student=student,
                graduation_year=from_year.year,
                graduation_date=graduation_date,
                final_class_name=from_class.name,
                final_grade_name=from_grade.name if from_grade else '',
                final_average_grade=metrics.average_grade,
                outstanding_balance=metrics.fee_balance,
                recorded_by=promoted_by,
            )
        else:
            to_grade = target.grade
            student.current_class = target
            student.grade = to_grade

        student.updated_by_id = promoted_by
        student.save()

        primary = eligibility.primary
        snapshot = {}
        if primary is not None:
            chosen = next((c for c in criteria if str(c.pk) == primary.criteria_id), None)
            snapshot = chosen.snapshot() if chosen else {}

        log = PromotionLog.objects.create(
            school=student.school,
            student=student,
            batch_id=batch_id,
            from_class=from_class,
            to_class=target,
            from_class_name=from_class.name,
            to_class_name=Grade.ALUMNI_NAME if to_alumni else target.name,
            from_grade=from_grade,
            to_grade=to_grade,
            from_academic_year=from_year,
            to_academic_year=to_year,
            promotion_type=promotion_type,
            promotion_date=get_school_current_time(),
            promoted_by=promoted_by,
            criteria_snapshot=snapshot,
            criteria_results=[r.as_dict() for r in eligibility.per_criteria_results],
            is_manual_override=manual_override,
            override_reason=override_reason if manual_override else '',
            is_graduation=to_alumni,
            average_grade=metrics.average_grade,
            outstanding_balance=metrics.fee_balance,
            disciplinary_cases=metrics.disciplinary_cases,
            notes=notes,
        )

        if to_alumni:
            log_financial_activity(
                'STUDENT_GRADUATE',
                user_id=promoted_by,
                target_object=log,
                amount=metrics.fee_balance,
                student=student,
                risk_level='MEDIUM' if metrics.fee_balance > 0 else 'LOW',
                batch_id=str(batch_id),
            )
            logger.info(f"Graduated {student} from {from_class.name} (balance {metrics.fee_balance})")
        else:
            log_financial_activity(
                'STUDENT_PROMOTE',
                user_id=promoted_by,
                target_object=log,
                student=student,
                notes=f"{from_class.name} -> {target.name}",
                batch_id=str(batch_id),
            )
            logger.info(f"Promoted {student} from {from_class.name} to {target.name}")
        return log

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def _record_exclusion(self, student, batch_id, from_year, reason, excluded_by):
        try:
            PromotionExclusion.objects.create(
                school=student.school,
                student=student,
                batch_id=batch_id,
                academic_year=from_year,
                reason=reason,
                excluded_by=excluded_by,
            )
        except Exception as e:
            logger.error(f"Failed to record promotion exclusion for {student}: {e}", exc_info=True)

    def execute_bulk_promotion(self, school, students, from_year, to_year=None, promoted_by='System',
                               promotion_type='bulk', overrides=None, close_year=True):
        """
        Promote many students. Each student is promoted in its own transaction;
        one failure never rolls back the others.

        Args:
            students: Student instances or ids
            overrides: {student_id: override_reason} for manual overrides

        Returns:
            PromotionResult
        """
        batch_id = uuid.uuid4()
        result = PromotionResult(batch_id=str(batch_id))
        overrides = {str(k): v for k, v in (overrides or {}).items()}

        instances, ids = [], []
        for student in students:
            if isinstance(student, Student):
                instances.append(student)
            else:
                ids.append(str(student))
        if ids:
            found = Student.objects.filter(school=school, pk__in=ids).select_related('school', 'grade', 'current_class')
            found_ids = {str(s.pk) for s in found}
            instances.extend(found)
            for missing in sorted(set(ids) - found_ids):
                result.errors.append(f"Student {missing} not found")

        for student in instances:
            student_id = str(student.pk)
            override_reason = overrides.get(student_id, '')
            try:
                log = self.promote_student(
                    student, from_year, to_year,
                    promoted_by=promoted_by,
                    promotion_type=promotion_type,
                    batch_id=batch_id,
                    manual_override=bool(override_reason),
                    override_reason=override_reason,
                    close_year=close_year,
                )
            except (AllocationFailure, NotFound) as e:
                reason = getattr(e, 'reason', str(e))
                result.excluded.append({'student_id': student_id, 'reason': reason})
                self._record_exclusion(student, batch_id, from_year, reason, promoted_by)
                continue
            except ValidationError as e:
                result.errors.append(f"{student.admission_number}: {'; '.join(e.messages)}")
                continue
            except Exception as e:
                logger.error(f"Unexpected error promoting {student}: {e}", exc_info=True)
                result.errors.append(f"{student.admission_number}: {e}")
                continue

            result.promoted.append(student_id)
            if log.is_graduation:
                result.graduated.append(student_id)

        logger.info(
            f"Promotion batch {batch_id} ({promotion_type}) for {school.code}: "
            f"{len(result.promoted)} promoted, {len(result.graduated)} graduated, "
            f"{len(result.excluded)} excluded, {len(result.errors)} errors"
        )
        return result

    def promote_class(self, class_instance, from_year, to_year=None, promoted_by='System', **kwargs):
        students = class_instance.students.filter(is_active=True).select_related('school', 'grade', 'current_class')
        return self.execute_bulk_promotion(
            class_instance.school, list(students), from_year, to_year,
            promoted_by=promoted_by, promotion_type='class', **kwargs
        )

    def promote_school(self, school, from_year, to_year=None, promoted_by='System', **kwargs):
        """Promote every active student with a class, most senior grade first."""
        students = (
            Student.objects.filter(school=school, is_active=True, current_class__isnull=False)
            .select_related('school', 'grade', 'current_class')
            .order_by('-grade__level', 'last_name')
        )
        return self.execute_bulk_promotion(
            school, list(students), from_year, to_year,
            promoted_by=promoted_by, promotion_type='school', **kwargs
        )

    @staticmethod
    def get_promotion_history(student):
        return list(
            PromotionLog.objects.filter(student=student)
            .select_related('from_academic_year', 'to_academic_year')
            .order_by('-promotion_date')
        )
