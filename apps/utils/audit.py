# utils/audit.py

import logging

from django.db import transaction

logger = logging.getLogger(__name__)


def log_financial_activity(
    action,
    user_id=None,
    target_object=None,
    amount=None,
    student=None,
    notes=None,
    risk_level='LOW',
    additional_data=None,
    batch_id=None,
    is_automated=False,
    currency=None,
):
    """
    Log financial activity for audit purposes using FinancialAuditLog.

    Audit failures never break the financial operation being audited; they
    are logged and None is returned.

    Args:
        action (str): Type of financial action (e.g., PAYMENT_RECEIVE).
        user_id (str, optional): Id of the user performing the action.
        target_object (Model instance, optional): Object affected (Payment, Receipt, ...).
        amount (Decimal, optional): Amount involved in the action.
        student (Student instance, optional): Related student.
        notes (str, optional): Additional notes or comments.
        risk_level (str, optional): 'LOW', 'MEDIUM' or 'HIGH'.
        additional_data (dict, optional): Extra context-specific data.
        batch_id (str, optional): For grouping bulk operations.
        is_automated (bool, optional): Whether action is automated.
        currency (str, optional): Currency code, e.g., 'KES'.
    """
    try:
        from utils.models import FinancialAuditLog

        if currency is None and student is not None:
            from core.models import FinancialSettings
            currency = FinancialSettings.get_for_school(student.school).currency

        with transaction.atomic():
            return FinancialAuditLog.log_financial_action(
                action=action,
                user_id=user_id,
                target_object=target_object,
                amount=amount,
                currency=currency,
                student=student,
                risk_level=risk_level,
                additional_data=additional_data,
                notes=notes,
                is_automated=is_automated,
                batch_id=batch_id,
            )
    except Exception as e:
        logger.error(f"Failed to log financial activity ({action}): {e}", exc_info=True)
        return None
