# fees/ledger.py

"""
Balance Calculator

Pure running-balance computation over a student's fee structures (debits)
and payments (credits). Nothing here touches the database; records are
normalised into the dataclasses below at the ingestion boundary, either
from model instances (``from_model``) or from external mappings.

- compute_balances: academic-year and term outstanding plus the ordered,
  balanced transaction list
- cascade_term_balances: overpayment carry between terms of one year
- summarize_transactions: opening / charged / paid / closing figures
"""

import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from core.utils import ZERO, to_money

logger = logging.getLogger(__name__)

INVOICE = 'invoice'
PAYMENT = 'payment'
BROUGHT_FORWARD = 'brought_forward'

CARRY_FORWARD_METHOD = 'CARRY_FORWARD'

TERM_NUMBER = re.compile(r'(\d+)')


def _as_datetime(value):
    if value is None:
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            parsed_date = parse_date(value)
            if parsed_date is None:
                raise ValidationError({'date': f"Invalid date: {value!r}"})
            parsed = datetime.combine(parsed_date, time.min)
        value = parsed
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def _term_order(term_name, explicit=None):
    if explicit is not None:
        return int(explicit)
    match = TERM_NUMBER.search(term_name or '')
    return int(match.group(1)) if match else 0


def _id(value):
    return str(value) if value is not None else None


# =============================================================================
# INPUT RECORDS
# =============================================================================

@dataclass(frozen=True)
class BreakdownLine:
    name: str
    value: Decimal


def normalize_breakdown(raw):
    """
    Normalise a fee breakdown into an ordered tuple of BreakdownLine.

    Accepts a list of ``{name, value}`` (or ``{name, amount}``) dicts, a list
    of ``(name, value)`` pairs, or a ``{name: value}`` mapping.

    Raises:
        ValidationError: on blank names or negative/malformed values
    """
    if not raw:
        return ()
    if isinstance(raw, dict):
        pairs = list(raw.items())
    else:
        pairs = []
        for entry in raw:
            if isinstance(entry, dict):
                value = entry.get('value', entry.get('amount'))
                pairs.append((entry.get('name'), value))
            else:
                name, value = entry
                pairs.append((name, value))

    lines = []
    for name, value in pairs:
        name = (name or '').strip()
        if not name:
            raise ValidationError({'breakdown': 'Every breakdown line needs a name'})
        try:
            amount = to_money(value)
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError({'breakdown': f"Invalid amount for {name}: {value!r}"})
        if amount < 0:
            raise ValidationError({'breakdown': f"Amount for {name} cannot be negative"})
        lines.append(BreakdownLine(name=name, value=amount))
    return tuple(lines)


@dataclass(frozen=True)
class FeeStructureRecord:
    id: Optional[str]
    academic_year_id: Optional[str]
    year: Optional[int]
    term_id: Optional[str]
    term: str
    term_order: int
    total_amount: Decimal
    created_at: datetime
    grade_id: Optional[str] = None
    breakdown: tuple = ()

    @classmethod
    def from_model(cls, fee_structure):
        return cls(
            id=_id(fee_structure.pk),
            academic_year_id=_id(fee_structure.academic_year_id),
            year=fee_structure.academic_year.year,
            term_id=_id(fee_structure.term_id),
            term=fee_structure.term.name,
            term_order=fee_structure.term.order,
            total_amount=to_money(fee_structure.total_amount),
            created_at=_as_datetime(fee_structure.created_at),
            grade_id=_id(fee_structure.grade_id),
            breakdown=tuple(
                BreakdownLine(name=item.name, value=to_money(item.amount))
                for item in fee_structure.items.all()
            ),
        )

    @property
    def dedupe_key(self):
        return (self.academic_year_id or self.year, self.term_id or self.term)


@dataclass(frozen=True)
class PaymentRecord:
    id: Optional[str]
    amount: Decimal
    payment_date: datetime
    academic_year_id: Optional[str]
    year: Optional[int]
    term_id: Optional[str]
    term: str = ''
    term_order: int = 0
    payment_method: str = ''
    receipt_number: str = ''
    reference_number: str = ''
    description: str = ''

    @classmethod
    def from_model(cls, payment):
        term = payment.term
        return cls(
            id=_id(payment.pk),
            amount=to_money(payment.amount),
            payment_date=_as_datetime(payment.payment_date),
            academic_year_id=_id(payment.academic_year_id),
            year=payment.academic_year.year,
            term_id=_id(payment.term_id),
            term=term.name if term else '',
            term_order=term.order if term else 0,
            payment_method=payment.payment_method,
            receipt_number=payment.receipt_number or '',
            reference_number=payment.reference_number or '',
            description=payment.description or '',
        )

    @property
    def reference(self):
        return self.receipt_number or self.reference_number or self.id or ''


@dataclass(frozen=True)
class CarryForwardRecord:
    """Balance moved into ``to_year``; positive is arrears, negative is credit."""

    id: Optional[str]
    to_academic_year_id: Optional[str]
    to_year: Optional[int]
    from_year: Optional[int]
    signed_amount: Decimal
    entry_date: datetime
    reference: str = ''
    description: str = ''

    @classmethod
    def from_model(cls, entry):
        return cls(
            id=_id(entry.pk),
            to_academic_year_id=_id(entry.to_academic_year_id),
            to_year=entry.to_academic_year.year,
            from_year=entry.from_academic_year.year,
            signed_amount=to_money(entry.signed_amount),
            entry_date=_as_datetime(entry.entry_date),
            reference=entry.reference,
            description=entry.description,
        )


def fee_structure_record_from_mapping(data):
    """
    Build a FeeStructureRecord from the external shape
    ``{gradeId, academicYearId, termId, term, year, totalAmount, breakdown}``.

    ``totalAmount`` defaults to the sum of the breakdown.
    """
    breakdown = normalize_breakdown(data.get('breakdown'))
    total = data.get('totalAmount')
    total_amount = to_money(total) if total is not None else sum((line.value for line in breakdown), ZERO)
    if total_amount < 0:
        raise ValidationError({'totalAmount': 'Total amount cannot be negative'})
    year = data.get('year')
    return FeeStructureRecord(
        id=_id(data.get('id')),
        academic_year_id=_id(data.get('academicYearId')),
        year=int(year) if year is not None else None,
        term_id=_id(data.get('termId')),
        term=data.get('term') or '',
        term_order=_term_order(data.get('term'), data.get('termOrder')),
        total_amount=total_amount,
        created_at=_as_datetime(data.get('createdAt') or timezone.now()),
        grade_id=_id(data.get('gradeId')),
        breakdown=breakdown,
    )


def payment_record_from_mapping(data):
    """
    Build a ledger record from the external payment shape
    ``{studentId, amount, paymentDate, paymentMethod, academicYearId, termId,
    referenceNumber, receiptNumber, receivedBy}``.

    Legacy rows whose method is CARRY_FORWARD become a CarryForwardRecord
    (credit when the description mentions an overpayment, arrears otherwise);
    everything else becomes a PaymentRecord.
    """
    amount = to_money(data.get('amount'))
    year = data.get('year')
    year = int(year) if year is not None else None
    method = (data.get('paymentMethod') or '').upper()
    description = data.get('description') or ''

    if method == CARRY_FORWARD_METHOD:
        signed = -amount if 'overpayment' in description.lower() else amount
        return CarryForwardRecord(
            id=_id(data.get('id')),
            to_academic_year_id=_id(data.get('academicYearId')),
            to_year=year,
            from_year=year - 1 if year is not None else None,
            signed_amount=signed,
            entry_date=_as_datetime(data.get('paymentDate')),
            reference=data.get('referenceNumber') or '',
            description=description,
        )

    if amount <= 0:
        raise ValidationError({'amount': 'Amount must be greater than zero'})
    if not data.get('paymentDate'):
        raise ValidationError({'paymentDate': 'This field is required'})
    return PaymentRecord(
        id=_id(data.get('id')),
        amount=amount,
        payment_date=_as_datetime(data.get('paymentDate')),
        academic_year_id=_id(data.get('academicYearId')),
        year=year,
        term_id=_id(data.get('termId')),
        term=data.get('term') or '',
        term_order=_term_order(data.get('term'), data.get('termOrder')),
        payment_method=method,
        receipt_number=data.get('receiptNumber') or '',
        reference_number=data.get('referenceNumber') or '',
        description=description,
    )


# =============================================================================
# OUTPUT TYPES
# =============================================================================

@dataclass
class Transaction:
    kind: str
    reference: str
    date: datetime
    description: str
    debit: Decimal
    credit: Decimal
    academic_year_id: Optional[str]
    year: Optional[int]
    term_id: Optional[str]
    term: str
    term_order: int
    sequence: int
    balance: Decimal = ZERO

    @property
    def amount(self):
        return self.debit - self.credit


@dataclass(frozen=True)
class TermBalance:
    academic_year_id: Optional[str]
    year: Optional[int]
    term_id: Optional[str]
    term: str
    term_order: int
    total_amount: Decimal
    paid_amount: Decimal

    @property
    def balance(self):
        return self.total_amount - self.paid_amount

    def as_dict(self):
        data = asdict(self)
        data['balance'] = self.balance
        return data


@dataclass(frozen=True)
class CascadedTermBalance:
    term_balance: TermBalance
    carried_in: Decimal
    effective_balance: Decimal
    carried_out: Decimal


@dataclass(frozen=True)
class BalanceResult:
    academic_year_outstanding: Decimal
    term_outstanding: Decimal
    term_balances: tuple = field(default_factory=tuple)
    transactions: tuple = field(default_factory=tuple)

    def get_term_balance(self, term_id):
        term_id = _id(term_id)
        for term_balance in self.term_balances:
            if term_balance.term_id == term_id:
                return term_balance
        return None

    def term_outstanding_for(self, term_id):
        term_balance = self.get_term_balance(term_id)
        return term_balance.balance if term_balance else ZERO

    def as_dict(self):
        return {
            'academic_year_outstanding': self.academic_year_outstanding,
            'term_outstanding': self.term_outstanding,
            'term_balances': [tb.as_dict() for tb in self.term_balances],
        }


# =============================================================================
# CALCULATION
# =============================================================================

def dedupe_fee_structures(fee_structures):
    """Keep the first fee structure seen for each (academic year, term)."""
    seen = set()
    unique = []
    for record in fee_structures:
        key = record.dedupe_key
        if key in seen:
            logger.warning(
                f"Ignoring duplicate fee structure {record.id} for {record.term} {record.year}"
            )
            continue
        seen.add(key)
        unique.append(record)
    return unique


def build_transactions(fee_structures, payments, carry_forwards=()):
    """
    Merge carry-forwards, fee structures and payments into one ordered,
    balanced transaction list.

    Brought-forward rows open the stream; everything else is ordered by date
    with input order breaking ties.
    """
    transactions = []

    for entry in carry_forwards:
        debit = entry.signed_amount if entry.signed_amount > 0 else ZERO
        credit = -entry.signed_amount if entry.signed_amount < 0 else ZERO
        transactions.append(Transaction(
            kind=BROUGHT_FORWARD,
            reference=entry.reference or 'B/F',
            date=entry.entry_date,
            description=entry.description or 'BALANCE BROUGHT FORWARD',
            debit=debit,
            credit=credit,
            academic_year_id=entry.to_academic_year_id,
            year=entry.to_year,
            term_id=None,
            term='',
            term_order=0,
            sequence=len(transactions),
        ))

    for record in fee_structures:
        transactions.append(Transaction(
            kind=INVOICE,
            reference=record.id or '',
            date=record.created_at,
            description=f"INVOICE - {record.term} {record.year}".upper(),
            debit=record.total_amount,
            credit=ZERO,
            academic_year_id=record.academic_year_id,
            year=record.year,
            term_id=record.term_id,
            term=record.term,
            term_order=record.term_order,
            sequence=len(transactions),
        ))

    for record in payments:
        transactions.append(Transaction(
            kind=PAYMENT,
            reference=record.reference,
            date=record.payment_date,
            description=record.description or f"PAYMENT - {record.payment_method}".rstrip(' -'),
            debit=ZERO,
            credit=record.amount,
            academic_year_id=record.academic_year_id,
            year=record.year,
            term_id=record.term_id,
            term=record.term,
            term_order=record.term_order,
            sequence=len(transactions),
        ))

    transactions.sort(key=lambda t: (t.kind != BROUGHT_FORWARD, t.date, t.sequence))

    running_balance = ZERO
    for transaction in transactions:
        running_balance += transaction.debit - transaction.credit
        transaction.balance = running_balance

    return transactions


def build_term_balances(fee_structures, payments):
    """Per-term slices: charges and payments tagged to each term, ordered by (year, term order)."""
    totals = {}

    def slot(record):
        key = (record.academic_year_id or record.year, record.term_id)
        if key not in totals:
            totals[key] = {
                'academic_year_id': record.academic_year_id,
                'year': record.year,
                'term_id': record.term_id,
                'term': record.term,
                'term_order': record.term_order,
                'total_amount': ZERO,
                'paid_amount': ZERO,
            }
        return totals[key]

    for record in fee_structures:
        slot(record)['total_amount'] += record.total_amount
    for record in payments:
        if record.term_id is None:
            continue
        slot(record)['paid_amount'] += record.amount

    term_balances = [TermBalance(**values) for values in totals.values()]
    term_balances.sort(key=lambda tb: (tb.year or 0, tb.term_order))
    return tuple(term_balances)


def compute_balances(fee_structures, payments, carry_forwards=(), scope_term_id=None, filter_academic_year=None):
    """
    Compute a student's outstanding balances.

    Args:
        fee_structures: FeeStructureRecord iterable (debits)
        payments: PaymentRecord iterable (credits)
        carry_forwards: CarryForwardRecord iterable; only used for a
            year-scoped query, where they open the year
        scope_term_id: Term whose slice is reported as ``term_outstanding``;
            defaults to the latest term with activity
        filter_academic_year: Year number to restrict the computation to

    Returns:
        BalanceResult
    """
    fee_structures = dedupe_fee_structures(fee_structures)
    payments = list(payments)

    if filter_academic_year is not None:
        year = int(filter_academic_year)
        fee_structures = [r for r in fee_structures if r.year == year]
        payments = [r for r in payments if r.year == year]
        carry_forwards = [r for r in carry_forwards if r.to_year == year]
    else:
        # Full history already contains what carry-forwards summarise
        carry_forwards = []

    transactions = build_transactions(fee_structures, payments, carry_forwards)
    term_balances = build_term_balances(fee_structures, payments)

    academic_year_outstanding = transactions[-1].balance if transactions else ZERO

    if scope_term_id is not None:
        scoped = [tb for tb in term_balances if tb.term_id == _id(scope_term_id)]
    else:
        scoped = term_balances[-1:]
    term_outstanding = scoped[0].balance if scoped else ZERO

    return BalanceResult(
        academic_year_outstanding=academic_year_outstanding,
        term_outstanding=term_outstanding,
        term_balances=term_balances,
        transactions=tuple(transactions),
    )


def cascade_term_balances(term_balances, opening_balance=ZERO):
    """
    Walk a year's terms in order, letting a negative (overpaid) balance
    reduce the following term. Effective balances never go below zero; the
    last ``carried_out`` is the credit left at year end.
    """
    carry = opening_balance
    cascaded = []
    for term_balance in term_balances:
        net = term_balance.balance + carry
        if net < 0:
            effective, carried_out = ZERO, net
        else:
            effective, carried_out = net, ZERO
        cascaded.append(CascadedTermBalance(
            term_balance=term_balance,
            carried_in=carry,
            effective_balance=effective,
            carried_out=carried_out,
        ))
        carry = carried_out
    return cascaded


def summarize_transactions(transactions):
    """
    Returns:
        dict: opening_balance, total_charged, total_paid, closing_balance
    """
    opening = sum((t.amount for t in transactions if t.kind == BROUGHT_FORWARD), ZERO)
    charged = sum((t.debit for t in transactions if t.kind == INVOICE), ZERO)
    paid = sum((t.credit for t in transactions if t.kind == PAYMENT), ZERO)
    return {
        'opening_balance': opening,
        'total_charged': charged,
        'total_paid': paid,
        'closing_balance': opening + charged - paid,
    }
