# fees/statements.py

"""
Statement Builder

Turns the Balance Calculator's ordered transaction list into statement rows
for on-screen display or an external PDF/CSV renderer. Rows are grouped
by term; amounts come straight from the transactions.

Row types:
- brought_forward: opening balance of the statement or of a new year
- term_header: ``=== TERM 1 2025 ===``
- transaction: numbered debit/credit line
- term_closing: balance at the end of a term group, with the term's own balance
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from core.utils import ZERO
from fees.ledger import BROUGHT_FORWARD

logger = logging.getLogger(__name__)

BROUGHT_FORWARD_ROW = 'brought_forward'
TERM_HEADER_ROW = 'term_header'
TRANSACTION_ROW = 'transaction'
TERM_CLOSING_ROW = 'term_closing'


@dataclass(frozen=True)
class StatementRow:
    row_type: str
    number: Optional[int]
    reference: str
    date: Optional[datetime]
    description: str
    debit: Optional[Decimal]
    credit: Optional[Decimal]
    balance: Optional[Decimal]
    term: str = ''
    year: Optional[int] = None
    term_balance: Optional[Decimal] = None

    @property
    def is_marker(self):
        return self.row_type != TRANSACTION_ROW

    def as_dict(self):
        return asdict(self)


def _term_label(term, year):
    return f"{term} {year or ''}".strip().upper()


def _brought_forward_row(balance, date=None, year=None, description='BALANCE BROUGHT FORWARD'):
    return StatementRow(
        row_type=BROUGHT_FORWARD_ROW,
        number=None,
        reference='B/F',
        date=date,
        description=description,
        debit=None,
        credit=None,
        balance=balance,
        year=year,
    )


def _term_closing_row(term, year, balance, term_balance):
    return StatementRow(
        row_type=TERM_CLOSING_ROW,
        number=None,
        reference='',
        date=None,
        description=f"{_term_label(term, year)} BALANCE",
        debit=None,
        credit=None,
        balance=balance,
        term=term,
        year=year,
        term_balance=term_balance,
    )


def _transaction_row(number, transaction, balance, term_balance=None):
    return StatementRow(
        row_type=TRANSACTION_ROW,
        number=number,
        reference=transaction.reference,
        date=transaction.date,
        description=transaction.description,
        debit=transaction.debit or None,
        credit=transaction.credit or None,
        balance=balance,
        term=transaction.term,
        year=transaction.year,
        term_balance=term_balance,
    )


def build_statement(transactions, include_markers=True):
    """
    Build statement rows from transactions already sorted and balanced by
    ``compute_balances``.

    With markers, each term is one group (ordered by year, then term order)
    holding its transactions in date order. The running balance is carried
    through the groups in that order, so it still ends at the ledger's
    closing figure; ``term_balance`` is the term's own slice.

    Args:
        transactions: Transaction iterable
        include_markers: Insert brought-forward, term header and term closing rows

    Returns:
        list[StatementRow]
    """
    if not include_markers:
        return [
            _transaction_row(number, transaction, transaction.balance)
            for number, transaction in enumerate(transactions, start=1)
        ]

    rows = []
    running_balance = ZERO
    groups = {}

    for transaction in transactions:
        if transaction.kind == BROUGHT_FORWARD:
            running_balance += transaction.debit - transaction.credit
            rows.append(_brought_forward_row(running_balance, date=transaction.date, year=transaction.year))
            continue
        key = (transaction.year or 0, transaction.term_order, transaction.term_id)
        groups.setdefault(key, []).append(transaction)

    number = 0
    current_year = rows[-1].year if rows else None

    for key in sorted(groups, key=lambda k: k[:2]):
        group = groups[key]
        term, year = group[0].term, group[0].year

        if current_year is not None and year != current_year:
            rows.append(_brought_forward_row(running_balance, year=year))
        current_year = year

        rows.append(StatementRow(
            row_type=TERM_HEADER_ROW,
            number=None,
            reference='',
            date=None,
            description=f"=== {_term_label(term, year)} ===",
            debit=None,
            credit=None,
            balance=running_balance,
            term=term,
            year=year,
            term_balance=ZERO,
        ))

        term_balance = ZERO
        for transaction in group:
            number += 1
            running_balance += transaction.debit - transaction.credit
            term_balance += transaction.debit - transaction.credit
            rows.append(_transaction_row(number, transaction, running_balance, term_balance))

        rows.append(_term_closing_row(term, year, running_balance, term_balance))

    return rows


def summarize_statement(rows):
    """
    Returns:
        dict: total_debit, total_credit, closing_balance
    """
    total_debit = sum((row.debit or ZERO for row in rows if row.row_type == TRANSACTION_ROW), ZERO)
    total_credit = sum((row.credit or ZERO for row in rows if row.row_type == TRANSACTION_ROW), ZERO)
    balances = [row.balance for row in rows if row.balance is not None]
    return {
        'total_debit': total_debit,
        'total_credit': total_credit,
        'closing_balance': balances[-1] if balances else ZERO,
    }
