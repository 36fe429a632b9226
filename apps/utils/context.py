# utils/context.py

"""
Thread-local request context.

Middleware stores the acting user and client IP here so that models and
audit logging can stamp records without threading a request object through
every service call.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

_thread_locals = local()


def set_request_context(user=None, ip_address=None, request_path=None):
    """
    Set the current request context for this thread.

    Args:
        user: The authenticated user (anonymous users are stored as None)
        ip_address: Client IP address
        request_path: The request path
    """
    if user is not None and not getattr(user, 'is_authenticated', False):
        user = None

    _thread_locals.request_context = {
        'user': user,
        'ip_address': ip_address,
        'request_path': request_path or '',
    }
    logger.debug(f"Set request context: user={user}, ip={ip_address}")


def get_request_context():
    """
    Returns:
        dict or None: The context set for this thread
    """
    return getattr(_thread_locals, 'request_context', None)


def clear_request_context():
    if hasattr(_thread_locals, 'request_context'):
        delattr(_thread_locals, 'request_context')


def get_client_ip(request):
    """Client IP, honouring the first X-Forwarded-For hop."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class RequestContext:
    """
    Context manager for temporarily setting request context.

    Used by management commands so that records they create carry an actor.

    Example:
        with RequestContext(user=bursar_user):
            YearTransitionService.close_school_year(...)
    """

    def __init__(self, user=None, ip_address=None, request_path=None):
        self.context = {
            'user': user,
            'ip_address': ip_address,
            'request_path': request_path or '',
        }
        self.previous_context = None

    def __enter__(self):
        self.previous_context = get_request_context()
        _thread_locals.request_context = self.context
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context:
            _thread_locals.request_context = self.previous_context
        else:
            clear_request_context()
