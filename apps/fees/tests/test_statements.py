from decimal import Decimal

from fees.ledger import compute_balances
from fees.statements import (
    BROUGHT_FORWARD_ROW,
    TERM_CLOSING_ROW,
    TERM_HEADER_ROW,
    TRANSACTION_ROW,
    build_statement,
    summarize_statement,
)
from fees.tests.test_ledger import at, make_carry_forward, make_fee, make_payment


def test_statement_groups_rows_by_term():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [make_payment(1, 4000, at(2025, 2, 1), receipt='RCP-2025-000001')]
    carry_forwards = [make_carry_forward(2000, entered=at(2025, 1, 1, hour=0))]
    result = compute_balances(fees, payments, carry_forwards=carry_forwards, filter_academic_year=2025)

    rows = build_statement(result.transactions)

    assert [(r.row_type, r.description, r.balance) for r in rows] == [
        (BROUGHT_FORWARD_ROW, 'BALANCE BROUGHT FORWARD', Decimal('2000')),
        (TERM_HEADER_ROW, '=== TERM 1 2025 ===', Decimal('2000')),
        (TRANSACTION_ROW, 'INVOICE - TERM 1 2025', Decimal('12000')),
        (TRANSACTION_ROW, 'PAYMENT - MPESA', Decimal('8000')),
        (TERM_CLOSING_ROW, 'TERM 1 2025 BALANCE', Decimal('8000')),
        (TERM_HEADER_ROW, '=== TERM 2 2025 ===', Decimal('8000')),
        (TRANSACTION_ROW, 'INVOICE - TERM 2 2025', Decimal('18000')),
        (TERM_CLOSING_ROW, 'TERM 2 2025 BALANCE', Decimal('18000')),
    ]
    assert rows[0].reference == 'B/F'
    closings = [r for r in rows if r.row_type == TERM_CLOSING_ROW]
    assert [r.term_balance for r in closings] == [Decimal('6000'), Decimal('10000')]


def test_each_term_is_grouped_once_when_invoices_precede_payments():
    fees = [make_fee(1, 10000, created=at(2025, 1, 6)), make_fee(2, 10000, created=at(2025, 1, 6, hour=9))]
    payments = [make_payment(1, 4000, at(2025, 2, 1))]
    result = compute_balances(fees, payments, filter_academic_year=2025)

    rows = build_statement(result.transactions)

    assert [r.description for r in rows if r.row_type == TERM_HEADER_ROW] == [
        '=== TERM 1 2025 ===',
        '=== TERM 2 2025 ===',
    ]
    assert [(r.row_type, r.balance, r.term_balance) for r in rows] == [
        (TERM_HEADER_ROW, Decimal('0'), Decimal('0')),
        (TRANSACTION_ROW, Decimal('10000'), Decimal('10000')),
        (TRANSACTION_ROW, Decimal('6000'), Decimal('6000')),
        (TERM_CLOSING_ROW, Decimal('6000'), Decimal('6000')),
        (TERM_HEADER_ROW, Decimal('6000'), Decimal('0')),
        (TRANSACTION_ROW, Decimal('16000'), Decimal('10000')),
        (TERM_CLOSING_ROW, Decimal('16000'), Decimal('10000')),
    ]
    assert summarize_statement(rows)['closing_balance'] == result.academic_year_outstanding


def test_transaction_rows_are_numbered_with_blank_sides():
    fees = [make_fee(1, 10000)]
    payments = [make_payment(1, 4000, at(2025, 2, 1), receipt='RCP-2025-000001')]
    result = compute_balances(fees, payments)

    rows = [r for r in build_statement(result.transactions) if r.row_type == TRANSACTION_ROW]

    assert [r.number for r in rows] == [1, 2]
    assert rows[0].debit == Decimal('10000') and rows[0].credit is None
    assert rows[1].debit is None and rows[1].credit == Decimal('4000')
    assert rows[1].reference == 'RCP-2025-000001'


def test_marker_rows_carry_no_amounts():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    result = compute_balances(fees, [])

    markers = [r for r in build_statement(result.transactions) if r.is_marker]

    assert markers
    assert all(r.debit is None and r.credit is None and r.number is None for r in markers)


def test_year_change_inserts_brought_forward_row():
    fees = [make_fee(1, 5000, year=2024), make_fee(1, 10000, year=2025)]
    result = compute_balances(fees, [])

    rows = build_statement(result.transactions)

    assert [r.row_type for r in rows] == [
        TERM_HEADER_ROW, TRANSACTION_ROW, TERM_CLOSING_ROW,
        BROUGHT_FORWARD_ROW, TERM_HEADER_ROW, TRANSACTION_ROW, TERM_CLOSING_ROW,
    ]
    brought_forward = rows[3]
    assert brought_forward.balance == Decimal('5000')
    assert brought_forward.year == 2025


def test_statement_without_markers_lists_transactions_only():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [make_payment(2, 3000, at(2025, 6, 1))]
    result = compute_balances(fees, payments)

    rows = build_statement(result.transactions, include_markers=False)

    assert all(r.row_type == TRANSACTION_ROW for r in rows)
    assert [r.balance for r in rows] == [t.balance for t in result.transactions]


def test_summary_totals_match_balance_result():
    fees = [make_fee(1, 10000), make_fee(2, 10000)]
    payments = [make_payment(1, 15000, at(2025, 2, 1))]
    result = compute_balances(fees, payments)

    summary = summarize_statement(build_statement(result.transactions))

    assert summary['total_debit'] == Decimal('20000')
    assert summary['total_credit'] == Decimal('15000')
    assert summary['closing_balance'] == result.academic_year_outstanding


def test_empty_statement():
    assert build_statement([]) == []
    assert summarize_statement([])['closing_balance'] == Decimal('0')
