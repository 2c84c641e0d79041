"""
Ombor — Payment ledger

Monthly expected / paid / carry-over arithmetic for tenant payments.

A payment row's total due is ``expected_amount + carry_over_debt``. The
carry-over is taken from exactly one prior calendar month when the row is
created and is never recomputed afterwards.
"""
import logging
from decimal import Decimal, ROUND_DOWN

from django.db import transaction
from django.utils import timezone

from .models import Payment

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def _dec(value):
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def previous_period(month, year):
    """(month, year) of the calendar month before the given one."""
    if month == 1:
        return 12, year - 1
    return month - 1, year


def next_period(month, year):
    if month == 12:
        return 1, year + 1
    return month + 1, year


def shortfall(payment):
    """Positive unpaid balance of a payment row, zero when fully covered."""
    remaining = _dec(payment.expected_amount) + _dec(payment.carry_over_debt) - _dec(payment.paid_amount)
    return remaining if remaining > 0 else Decimal('0')


def compute_carry_over(tenant, month, year):
    """Debt carried into (month, year) from the previous month's row, if any."""
    prev_month, prev_year = previous_period(month, year)
    prev = Payment.objects.filter(tenant=tenant, month=prev_month, year=prev_year).first()
    if prev is None:
        return Decimal('0')
    return shortfall(prev)


def payment_status(expected_amount, carry_over_debt, paid_amount):
    total = _dec(expected_amount) + _dec(carry_over_debt)
    paid = _dec(paid_amount)
    if paid >= total:
        return Payment.STATUS_PAID
    if paid > 0:
        return Payment.STATUS_PARTIAL
    return Payment.STATUS_UNPAID


def record_payment(tenant, month, year, expected_amount, paid_amount, notes=''):
    """
    Create or update the ledger row for (tenant, month, year).

    An existing row only gets its paid amount, notes and payment date
    replaced; its expected amount and carry-over stay as they were.
    Returns ``(payment, created)``.
    """
    if not 1 <= month <= 12:
        raise ValueError(f'Invalid month: {month}')

    paid = _dec(paid_amount)
    now = timezone.now()

    with transaction.atomic():
        existing = (
            Payment.objects.select_for_update()
            .filter(tenant=tenant, month=month, year=year)
            .first()
        )
        if existing is not None:
            existing.paid_amount = paid
            existing.notes = notes or ''
            existing.payment_date = now
            existing.save(update_fields=['paid_amount', 'notes', 'payment_date', 'updated_at'])
            logger.info('Payment updated: tenant=%s period=%s-%02d paid=%s',
                        tenant.id, year, month, paid)
            return existing, False

        payment = Payment.objects.create(
            tenant=tenant,
            month=month,
            year=year,
            expected_amount=_dec(expected_amount),
            paid_amount=paid,
            carry_over_debt=compute_carry_over(tenant, month, year),
            notes=notes or '',
            payment_date=now if paid > 0 else None,
        )
        logger.info('Payment created: tenant=%s period=%s-%02d carry_over=%s',
                    tenant.id, year, month, payment.carry_over_debt)
        return payment, True


def split_advance(amount, months):
    """
    Split a lump sum evenly over ``months`` shares.

    Every share is ``amount / months`` truncated to the cent; the last share
    takes the remainder so the shares add up to ``amount`` and none is negative.
    """
    if months < 1:
        raise ValueError('months must be at least 1')
    amount = _dec(amount)
    share = (amount / months).quantize(CENT, rounding=ROUND_DOWN)
    shares = [share] * months
    shares[-1] = amount - share * (months - 1)
    return shares


def record_advance_payment(tenant, start_month, start_year, amount, months, notes=''):
    """
    Spread an advance payment over ``months`` consecutive months.

    Missing rows are created at the tenant's monthly rent with carry-over
    computed from the month before; existing rows get their share added to
    the paid amount. Returns the touched rows in calendar order.
    """
    if not 1 <= start_month <= 12:
        raise ValueError(f'Invalid month: {start_month}')

    shares = split_advance(amount, months)
    now = timezone.now()
    month, year = start_month, start_year
    rows = []

    with transaction.atomic():
        for share in shares:
            payment = (
                Payment.objects.select_for_update()
                .filter(tenant=tenant, month=month, year=year)
                .first()
            )
            if payment is None:
                payment = Payment.objects.create(
                    tenant=tenant,
                    month=month,
                    year=year,
                    expected_amount=_dec(tenant.monthly_rent),
                    paid_amount=share,
                    carry_over_debt=compute_carry_over(tenant, month, year),
                    notes=notes or '',
                    payment_date=now if share > 0 else None,
                )
            else:
                payment.paid_amount = _dec(payment.paid_amount) + share
                payment.payment_date = now
                if notes:
                    payment.notes = notes
                payment.save(update_fields=['paid_amount', 'notes', 'payment_date', 'updated_at'])
            rows.append(payment)
            month, year = next_period(month, year)

    logger.info('Advance payment recorded: tenant=%s start=%s-%02d months=%s amount=%s',
                tenant.id, start_year, start_month, months, amount)
    return rows


def period_summary(payments):
    """Totals for a list of payment rows: expected (incl. carry-over), paid, remaining."""
    expected = sum((p.total_due for p in payments), Decimal('0'))
    paid = sum((_dec(p.paid_amount) for p in payments), Decimal('0'))
    return {
        'expected': expected,
        'paid': paid,
        'remaining': expected - paid,
    }
