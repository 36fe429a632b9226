from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from fees.ledger import (
    BROUGHT_FORWARD,
    CarryForwardRecord,
    FeeStructureRecord,
    INVOICE,
    PAYMENT,
    PaymentRecord,
    cascade_term_balances,
    compute_balances,
    fee_structure_record_from_mapping,
    normalize_breakdown,
    payment_record_from_mapping,
    summarize_transactions,
)


def at(year, month=1, day=1, hour=8):
    return datetime(year, month, day, hour, tzinfo=dt_timezone.utc)


def make_fee(term_order, amount, year=2025, created=None, fee_id=None):
    return FeeStructureRecord(
        id=fee_id or f"fs-{year}-{term_order}",
        academic_year_id=f"ay-{year}",
        year=year,
        term_id=f"t-{year}-{term_order}",
        term=f"Term {term_order}",
        term_order=term_order,
        total_amount=Decimal(str(amount)),
        created_at=created or at(year, term_order * 4 - 3),
    )


def make_payment(term_order, amount, paid_at, year=2025, receipt='', description=''):
    return PaymentRecord(
        id=f"p-{paid_at:%Y%m%d%H}-{amount}",
        amount=Decimal(str(amount)),
        payment_date=paid_at,
        academic_year_id=f"ay-{year}",
        year=year,
        term_id=f"t-{year}-{term_order}" if term_order else None,
        term=f"Term {term_order}" if term_order else '',
        term_order=term_order or 0,
        payment_method='MPESA',
        receipt_number=receipt,
        description=description,
    )


def make_carry_forward(amount, to_year=2025, entered=None):
    return CarryForwardRecord(
        id=f"cf-{to_year}",
        to_academic_year_id=f"ay-{to_year}",
        to_year=to_year,
        from_year=to_year - 1,
        signed_amount=Decimal(str(amount)),
        entry_date=entered or at(to_year, 12, 31),
        reference=f"CF-{to_year - 1}-{to_year}",
    )


def test_single_term_paid_in_full():
    fees = [make_fee(1, 10000)]
    payments = [make_payment(1, 10000, at(2025, 2, 1))]

    result = compute_balances(fees, payments, scope_term_id='t-2025-1', filter_academic_year=2025)

    assert result.term_outstanding == Decimal('0')
    assert result.academic_year_outstanding == Decimal('0')
    assert [t.kind for t in result.transactions] == [INVOICE, PAYMENT]


def test_no_fee_structures_and_no_payments_is_zero():
    result = compute_balances([], [])

    assert result.academic_year_outstanding == Decimal('0')
    assert result.term_outstanding == Decimal('0')
    assert result.transactions == ()
    assert result.term_balances == ()


def test_payment_without_fee_structure_creates_credit():
    payments = [make_payment(1, 2500, at(2025, 3, 1))]

    result = compute_balances([], payments)

    assert result.academic_year_outstanding == Decimal('-2500')
    assert result.term_outstanding == Decimal('-2500')


def test_duplicate_fee_structures_keep_first_seen():
    fees = [
        make_fee(1, 10000, fee_id='first'),
        make_fee(1, 12000, fee_id='duplicate'),
        make_fee(2, 8000),
    ]

    result = compute_balances(fees, [])

    assert result.academic_year_outstanding == Decimal('18000')
    assert [t.reference for t in result.transactions if t.kind == INVOICE] == ['first', 'fs-2025-2']
    assert result.term_outstanding_for('t-2025-1') == Decimal('10000')


def test_term_balances_are_slices_not_running_balances():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [
        # Term 1 is paid after term 2's invoice in the global order
        make_payment(2, 5000, at(2025, 5, 10)),
        make_payment(1, 10000, at(2025, 6, 1)),
    ]

    result = compute_balances(fees, payments, filter_academic_year=2025)

    assert result.term_outstanding_for('t-2025-1') == Decimal('0')
    assert result.term_outstanding_for('t-2025-2') == Decimal('5000')
    assert result.term_outstanding == Decimal('5000')
    assert sum(tb.balance for tb in result.term_balances) == result.academic_year_outstanding


def test_scope_term_selects_reported_term():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [make_payment(1, 4000, at(2025, 2, 1))]

    result = compute_balances(fees, payments, scope_term_id='t-2025-1')

    assert result.term_outstanding == Decimal('6000')
    assert result.academic_year_outstanding == Decimal('16000')


def test_transactions_sorted_by_date_with_input_order_breaking_ties():
    same_time = at(2025, 2, 1)
    fees = [make_fee(1, 10000, created=at(2025, 1, 5))]
    payments = [
        make_payment(1, 3000, same_time, receipt='RCP-A'),
        make_payment(1, 2000, same_time, receipt='RCP-B'),
        make_payment(1, 1000, at(2025, 1, 2), receipt='RCP-EARLY'),
    ]

    result = compute_balances(fees, payments)

    assert [t.reference for t in result.transactions] == ['RCP-EARLY', 'fs-2025-1', 'RCP-A', 'RCP-B']
    assert [t.balance for t in result.transactions] == [
        Decimal('-1000'), Decimal('9000'), Decimal('6000'), Decimal('4000'),
    ]


def test_year_outstanding_independent_of_payment_input_order():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [
        make_payment(1, 3000, at(2025, 2, 1)),
        make_payment(2, 4000, at(2025, 6, 1)),
        make_payment(1, 2000, at(2025, 3, 1)),
    ]

    forward = compute_balances(fees, payments)
    backward = compute_balances(fees, list(reversed(payments)))

    assert forward.academic_year_outstanding == backward.academic_year_outstanding == Decimal('11000')
    assert [t.balance for t in forward.transactions] == [t.balance for t in backward.transactions]


def test_carry_forward_opens_scoped_year():
    fees = [make_fee(1, 5000, year=2024), make_fee(1, 10000, year=2025)]
    payments = [make_payment(1, 4000, at(2025, 2, 1))]
    carry_forwards = [make_carry_forward(2000, entered=at(2025, 3, 1))]

    result = compute_balances(fees, payments, carry_forwards=carry_forwards, filter_academic_year=2025)

    assert result.transactions[0].kind == BROUGHT_FORWARD
    assert result.transactions[0].balance == Decimal('2000')
    # arrears + 2025 charges - 2025 payments
    assert result.academic_year_outstanding == Decimal('8000')
    # term slices never include the brought-forward amount
    assert result.term_outstanding_for('t-2025-1') == Decimal('6000')


def test_unscoped_query_ignores_carry_forwards():
    fees = [make_fee(1, 5000, year=2024), make_fee(1, 10000, year=2025)]
    payments = [make_payment(1, 3000, at(2024, 2, 1), year=2024)]
    carry_forwards = [make_carry_forward(2000)]

    result = compute_balances(fees, payments, carry_forwards=carry_forwards)

    assert result.academic_year_outstanding == Decimal('12000')
    assert all(t.kind != BROUGHT_FORWARD for t in result.transactions)


def test_credit_carry_forward_reduces_opening_balance():
    fees = [make_fee(1, 10000, year=2025)]
    carry_forwards = [make_carry_forward(-3000)]

    result = compute_balances(fees, [], carry_forwards=carry_forwards, filter_academic_year=2025)

    assert result.transactions[0].credit == Decimal('3000')
    assert result.academic_year_outstanding == Decimal('7000')


def test_compute_balances_is_repeatable():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [make_payment(1, 15000, at(2025, 2, 1))]

    assert compute_balances(fees, payments) == compute_balances(fees, payments)


def test_overpaid_term_cascades_into_next_term():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [make_payment(1, 13000, at(2025, 2, 1))]
    result = compute_balances(fees, payments)

    cascaded = cascade_term_balances(result.term_balances)

    assert cascaded[0].effective_balance == Decimal('0')
    assert cascaded[0].carried_out == Decimal('-3000')
    assert cascaded[1].carried_in == Decimal('-3000')
    assert cascaded[1].effective_balance == Decimal('7000')
    assert sum(c.effective_balance for c in cascaded) == result.academic_year_outstanding


def test_cascade_reports_year_end_credit():
    fees = [make_fee(1, 10000)]
    payments = [make_payment(1, 13000, at(2025, 2, 1))]
    result = compute_balances(fees, payments)

    cascaded = cascade_term_balances(result.term_balances)

    assert cascaded[-1].effective_balance == Decimal('0')
    assert cascaded[-1].carried_out == Decimal('-3000')


def test_summarize_transactions_splits_opening_charges_and_payments():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [make_payment(1, 12000, at(2025, 2, 1))]
    carry_forwards = [make_carry_forward(1500)]
    result = compute_balances(fees, payments, carry_forwards=carry_forwards, filter_academic_year=2025)

    summary = summarize_transactions(result.transactions)

    assert summary == {
        'opening_balance': Decimal('1500'),
        'total_charged': Decimal('20000'),
        'total_paid': Decimal('12000'),
        'closing_balance': Decimal('9500'),
    }
    assert summary['closing_balance'] == result.academic_year_outstanding


def test_invoice_description_names_term_and_year():
    result = compute_balances([make_fee(2, 10000)], [])

    assert result.transactions[0].description == 'INVOICE - TERM 2 2025'


# =============================================================================
# INGESTION
# =============================================================================

def test_breakdown_list_and_mapping_normalise_alike():
    as_list = normalize_breakdown([{'name': 'Tuition', 'value': 8000}, {'name': 'Lunch', 'amount': '2000'}])
    as_mapping = normalize_breakdown({'Tuition': 8000, 'Lunch': '2000.00'})

    assert as_list == as_mapping
    assert [line.name for line in as_list] == ['Tuition', 'Lunch']
    assert as_list[1].value == Decimal('2000.00')


@pytest.mark.parametrize('raw', [
    [{'name': 'Tuition', 'value': -1}],
    [{'name': '', 'value': 100}],
    {'Books': 'abc'},
])
def test_breakdown_rejects_bad_lines(raw):
    with pytest.raises(ValidationError):
        normalize_breakdown(raw)


def test_fee_structure_mapping_defaults_total_to_breakdown_sum():
    record = fee_structure_record_from_mapping({
        'gradeId': 'g1',
        'academicYearId': 'ay-2025',
        'termId': 't-2025-2',
        'term': 'Term 2',
        'year': 2025,
        'breakdown': {'Tuition': 8000, 'Transport': 1500},
    })

    assert record.total_amount == Decimal('9500.00')
    assert record.term_order == 2
    assert record.dedupe_key == ('ay-2025', 't-2025-2')


def test_payment_mapping_turns_legacy_carry_forward_into_credit():
    record = payment_record_from_mapping({
        'studentId': 's1',
        'amount': 3000,
        'paymentDate': '2025-01-01',
        'paymentMethod': 'CARRY_FORWARD',
        'academicYearId': 'ay-2025',
        'year': 2025,
        'description': 'Overpayment Credit Carried Forward from 2024 to 2025',
    })

    assert isinstance(record, CarryForwardRecord)
    assert record.signed_amount == Decimal('-3000.00')
    assert record.from_year == 2024


def test_payment_mapping_builds_payment_record():
    record = payment_record_from_mapping({
        'studentId': 's1',
        'amount': '2500',
        'paymentDate': '2025-02-03T10:15:00',
        'paymentMethod': 'mpesa',
        'academicYearId': 'ay-2025',
        'termId': 't-2025-1',
        'term': 'Term 1',
        'year': 2025,
        'receiptNumber': 'RCP-2025-000004',
    })

    assert isinstance(record, PaymentRecord)
    assert record.payment_method == 'MPESA'
    assert record.reference == 'RCP-2025-000004'
    assert record.payment_date.tzinfo is not None


@pytest.mark.parametrize('data', [
    {'amount': 0, 'paymentDate': '2025-02-03'},
    {'amount': -10, 'paymentDate': '2025-02-03'},
    {'amount': 100},
])
def test_payment_mapping_rejects_invalid_payments(data):
    with pytest.raises(ValidationError):
        payment_record_from_mapping(data)


def test_as_dict_exposes_term_balances():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    # all credit tagged to term 1
    payments = [make_payment(1, 15000, at(2025, 2, 1))]
    result = compute_balances(fees, payments)

    data = result.as_dict()

    assert data['academic_year_outstanding'] == Decimal('5000')
    assert [(tb['term'], tb['balance']) for tb in data['term_balances']] == [
        ('Term 1', Decimal('-5000')),
        ('Term 2', Decimal('10000')),
    ]
    assert data['term_balances'][0]['year'] == 2025
    assert data['term_balances'][0]['total_amount'] == Decimal('10000')
