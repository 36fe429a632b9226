# core/exceptions.py

"""
Domain exceptions.

Validation problems use django.core.exceptions.ValidationError directly;
the classes here cover lookups and allocation problems.
"""

from django.core.exceptions import ObjectDoesNotExist


class NotFound(ObjectDoesNotExist):
    """A school, student, class or fee structure required by an operation is absent."""


class FeeStructureNotFound(NotFound):
    pass


class TargetClassNotFound(NotFound):
    pass


class AllocationFailure(Exception):
    """
    A payment or promotion cannot be applied to a particular student or term.

    Batch operations turn this into an exclusion carrying ``reason``.
    """

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason
