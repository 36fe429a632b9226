# fees/management/commands/close_academic_year.py

"""
Close an academic year for every student of a school and carry balances
into the next year.

USAGE EXAMPLES:
===============

# Close 2025 for school KPS, carrying balances into the following year
python manage.py close_academic_year KPS 2025

# Carry into an explicit year
python manage.py close_academic_year KPS 2025 --to-year 2026

# Show what would be closed without writing anything
python manage.py close_academic_year KPS 2025 --dry-run
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from academics.models import AcademicYear
from core.models import School
from fees.models import YearlyClosingBalance
from fees.services import YearTransitionService
from students.models import Student
from utils.context import RequestContext

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Close an academic year and carry student balances forward'

    def add_arguments(self, parser):
        parser.add_argument('school_code', help='Code of the school')
        parser.add_argument('year', type=int, help='Academic year to close, e.g. 2025')
        parser.add_argument(
            '--to-year', type=int, default=None,
            help='Academic year receiving the carried balances (defaults to the next year)'
        )
        parser.add_argument(
            '--recorded-by', default='System',
            help='Name recorded on the closing snapshots'
        )
        parser.add_argument(
            '--dry-run', action='store_true',
            help='List the students that would be closed without writing anything'
        )

    def handle(self, *args, **options):
        school = School.objects.filter(code=options['school_code']).first()
        if school is None:
            raise CommandError(f"School '{options['school_code']}' does not exist")

        academic_year = AcademicYear.objects.filter(school=school, year=options['year']).first()
        if academic_year is None:
            raise CommandError(f"Academic year {options['year']} does not exist for {school.code}")

        if options['to_year']:
            next_year = AcademicYear.objects.filter(school=school, year=options['to_year']).first()
            if next_year is None:
                raise CommandError(f"Academic year {options['to_year']} does not exist for {school.code}")
        else:
            next_year = academic_year.get_next()
            if next_year is None:
                self.stdout.write(self.style.WARNING(
                    f"No academic year after {academic_year}; snapshots will be written without carry-forward"
                ))

        if options['dry_run']:
            closed = set(
                YearlyClosingBalance.objects.filter(academic_year=academic_year).values_list('student_id', flat=True)
            )
            pending = Student.objects.filter(school=school).exclude(pk__in=closed)
            self.stdout.write(f"{pending.count()} student(s) would be closed, {len(closed)} already closed")
            return

        with RequestContext(request_path='manage.py close_academic_year'):
            results = YearTransitionService().close_school_year(
                school, academic_year, next_year, recorded_by=options['recorded_by']
            )

        self.stdout.write(self.style.SUCCESS(
            f"Closed {len(results['closed'])}, skipped {len(results['skipped'])}, "
            f"failed {len(results['errors'])}"
        ))
        for error in results['errors']:
            self.stdout.write(self.style.ERROR(f"  {error}"))
