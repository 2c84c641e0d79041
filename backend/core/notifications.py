"""
Ombor — Notifications
In-app notifications and the month-end payment reminder job.
"""
import calendar
import logging
from decimal import Decimal

from django.conf import settings
from django.utils import timezone

from .models import Notification, Payment, Tenant, User, UserRole

logger = logging.getLogger(__name__)

REMINDER_TITLE = "To'lov eslatmasi"
REMINDER_NAMES_SHOWN = 3


def format_currency(amount):
    """1500000 -> "1 500 000 so'm"."""
    amount = Decimal(amount or 0)
    if amount == amount.to_integral_value():
        text = f'{amount:,.0f}'
    else:
        text = f'{amount:,.2f}'
    return f"{text.replace(',', ' ')} {settings.CURRENCY_LABEL}"


def create_notification(user, title, message, type=Notification.TYPE_INFO,
                        related_id='', related_type=''):
    notification = Notification.objects.create(
        user=user,
        title=title,
        message=message,
        type=type,
        related_id=str(related_id) if related_id else '',
        related_type=related_type or '',
    )
    logger.debug('Notification %s created for %s', notification.id, user.email)
    return notification


def notify_user(user, title, message, type=Notification.TYPE_INFO, **related):
    return create_notification(user, title, message, type, **related)


def notify_owner(title, message, type=Notification.TYPE_INFO, **related):
    """Notify the system owner. Returns None when no owner is provisioned yet."""
    owner = User.objects.filter(user_role__role=UserRole.OWNER).order_by('created_at').first()
    if owner is None:
        logger.warning('No owner to notify: %s', title)
        return None
    return create_notification(owner, title, message, type, **related)


# ═══════════════════════════════════════════════════════════
#  PAYMENT REMINDERS
# ═══════════════════════════════════════════════════════════

def days_until_month_end(today):
    last_day = calendar.monthrange(today.year, today.month)[1]
    return last_day - today.day


def _unpaid_by_admin(month, year):
    """{admin_id: [(tenant, unpaid_amount), ...]} for active tenants still owing this month."""
    payments = {
        p.tenant_id: p
        for p in Payment.objects.filter(month=month, year=year, tenant__is_active=True)
    }
    grouped = {}
    tenants = Tenant.objects.filter(is_active=True).select_related('admin').order_by('full_name')
    for tenant in tenants:
        payment = payments.get(tenant.id)
        if payment is None:
            unpaid = tenant.monthly_rent or Decimal('0')
        else:
            unpaid = payment.remaining
        if unpaid <= 0:
            continue
        grouped.setdefault(tenant.admin_id, []).append((tenant, unpaid))
    return grouped


def reminder_message(entries):
    names = ', '.join(t.full_name for t, _ in entries[:REMINDER_NAMES_SHOWN])
    extra = len(entries) - REMINDER_NAMES_SHOWN
    more = f' va yana {extra} ta' if extra > 0 else ''
    total = sum((amount for _, amount in entries), Decimal('0'))
    return (f"{len(entries)} ta ijarachi to'lovini amalga oshirmagan: "
            f"{names}{more}. Jami: {format_currency(total)}")


def send_payment_reminders(today=None):
    """
    Write one reminder per admin listing their tenants with an unpaid balance
    for the current month.

    Does nothing outside the last REMINDER_DAYS_BEFORE_MONTH_END days of the
    month. An admin who already got a reminder on ``today`` is skipped.
    Returns a summary dict.
    """
    today = today or timezone.localdate()
    days_left = days_until_month_end(today)
    window = settings.REMINDER_DAYS_BEFORE_MONTH_END

    if days_left > window:
        logger.info('Payment reminders skipped: %s days until month end', days_left)
        return {'sent': 0, 'days_until_month_end': days_left, 'unpaid_tenants': 0,
                'skipped': True}

    grouped = _unpaid_by_admin(today.month, today.year)
    unpaid_count = sum(len(entries) for entries in grouped.values())
    sent = 0

    for admin_id, entries in grouped.items():
        already_sent = Notification.objects.filter(
            user_id=admin_id,
            type=Notification.TYPE_PAYMENT_REMINDER,
            created_at__date=today,
        ).exists()
        if already_sent:
            logger.info('Reminder already sent today to admin %s', admin_id)
            continue

        try:
            create_notification(
                entries[0][0].admin,
                REMINDER_TITLE,
                reminder_message(entries),
                type=Notification.TYPE_PAYMENT_REMINDER,
                related_type='payment',
            )
        except Exception:
            logger.exception('Failed to create payment reminder for admin %s', admin_id)
            raise
        sent += 1

    logger.info('Payment reminders: %s sent, %s tenants unpaid', sent, unpaid_count)
    return {'sent': sent, 'days_until_month_end': days_left,
            'unpaid_tenants': unpaid_count, 'skipped': False}
