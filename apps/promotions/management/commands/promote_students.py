# promotions/management/commands/promote_students.py

"""
Promote a whole school, or one class, to the next academic year.

USAGE EXAMPLES:
===============

# Check every class has a promotion target
python manage.py promote_students KPS 2025 --check

# Promote the whole school from 2025 into 2026
python manage.py promote_students KPS 2025 --to-year 2026 --promoted-by "Head Teacher"

# Promote one class only
python manage.py promote_students KPS 2025 --class "Grade 3A"
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from academics.models import AcademicYear, Class
from core.models import School
from promotions.services import PromotionService
from utils.context import RequestContext

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Promote students to their next class, graduating the terminal grade'

    def add_arguments(self, parser):
        parser.add_argument('school_code', help='Code of the school')
        parser.add_argument('year', type=int, help='Academic year being promoted out of')
        parser.add_argument('--to-year', type=int, default=None, help='Academic year promoted into')
        parser.add_argument('--class', dest='class_name', default=None, help='Promote this class only')
        parser.add_argument('--promoted-by', default='System')
        parser.add_argument(
            '--no-close-year', action='store_true',
            help='Do not close the year and carry balances forward while promoting'
        )
        parser.add_argument('--check', action='store_true', help='Only validate promotion targets')

    def handle(self, *args, **options):
        school = School.objects.filter(code=options['school_code']).first()
        if school is None:
            raise CommandError(f"School '{options['school_code']}' does not exist")

        from_year = AcademicYear.objects.filter(school=school, year=options['year']).first()
        if from_year is None:
            raise CommandError(f"Academic year {options['year']} does not exist for {school.code}")
        to_year = from_year.get_next()
        if options['to_year']:
            to_year = AcademicYear.objects.filter(school=school, year=options['to_year']).first()
            if to_year is None:
                raise CommandError(f"Academic year {options['to_year']} does not exist for {school.code}")

        service = PromotionService()

        problems = service.validate_promotion_targets(school, from_year)
        for problem in problems:
            self.stdout.write(self.style.WARNING(problem))
        if options['check']:
            if not problems:
                self.stdout.write(self.style.SUCCESS('Every class has a promotion target'))
            return

        kwargs = {
            'promoted_by': options['promoted_by'],
            'close_year': not options['no_close_year'],
        }
        with RequestContext(request_path='manage.py promote_students'):
            if options['class_name']:
                class_instance = Class.objects.filter(school=school, name=options['class_name']).first()
                if class_instance is None:
                    raise CommandError(f"Class '{options['class_name']}' does not exist")
                result = service.promote_class(class_instance, from_year, to_year, **kwargs)
            else:
                result = service.promote_school(school, from_year, to_year, **kwargs)

        self.stdout.write(self.style.SUCCESS(
            f"Batch {result.batch_id}: {len(result.promoted)} promoted "
            f"({len(result.graduated)} graduated), {len(result.excluded)} excluded"
        ))
        for exclusion in result.excluded:
            self.stdout.write(f"  excluded {exclusion['student_id']}: {exclusion['reason']}")
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))
