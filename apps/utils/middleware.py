# utils/middleware.py

import logging
from utils.context import set_request_context, clear_request_context, get_client_ip

logger = logging.getLogger(__name__)


class AuditContextMiddleware:
    """
    Capture the acting user and client IP for audit stamping.
    Must run after AuthenticationMiddleware.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = getattr(request, 'user', None)
        set_request_context(
            user=user,
            ip_address=get_client_ip(request),
            request_path=request.path,
        )
        try:
            response = self.get_response(request)
        finally:
            clear_request_context()
        return response
