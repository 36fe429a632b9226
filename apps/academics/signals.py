# academics/signals.py
"""
Signal handlers for academics app
"""

from django.db.models.signals import post_save
from django.dispatch import receiver
import logging

from academics.models import Grade

logger = logging.getLogger(__name__)


@receiver(post_save, sender='core.School')
def seed_alumni_grade(sender, instance, created, **kwargs):
    """Every new school gets its Alumni sentinel grade up front."""
    if created:
        Grade.ensure_alumni_grade(instance)
