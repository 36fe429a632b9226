# academics/utils.py

"""
Helpers for class naming and calendar lookups.
"""

import logging
import re

logger = logging.getLogger(__name__)

# "Grade 3B", "Grade 3 B", "3B", "Form 2"
CLASS_NAME_PATTERN = re.compile(r'^(?P<prefix>.*?)(?P<number>\d+)\s*(?P<section>[A-Za-z]?)\s*$')


def parse_class_name(name):
    """
    Split a class name into its prefix, grade number and section letter.

    Returns:
        tuple: (prefix, number, section) or None when the name has no grade number
    """
    match = CLASS_NAME_PATTERN.match((name or '').strip())
    if not match:
        return None
    return match.group('prefix'), int(match.group('number')), match.group('section').upper()


def next_class_name(name):
    """
    Name of the class one grade up, keeping the section letter.

    >>> next_class_name('Grade 1A')
    'Grade 2A'
    """
    parsed = parse_class_name(name)
    if parsed is None:
        return None
    prefix, number, section = parsed
    return f"{prefix}{number + 1}{section}"
