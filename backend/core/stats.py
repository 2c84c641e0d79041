"""
Ombor — Statistics
Read-side rollups for the dashboard and statistics pages.

Every function takes an optional ``admin``: ``None`` means the owner's view
over all data, otherwise only that admin's tenants are counted. Nothing is
cached; each call recomputes from the payment rows.
"""
from datetime import date
from decimal import Decimal

from django.db.models import Count, F, Sum

from .models import AdminStatus, Payment, Tenant, UserRole, User, Warehouse

MONTH_ABBREVIATIONS = {
    'uz': ['Yan', 'Fev', 'Mar', 'Apr', 'May', 'Iyn', 'Iyl', 'Avg', 'Sen', 'Okt', 'Noy', 'Dek'],
    'ru': ['Янв', 'Фев', 'Мар', 'Апр', 'Май', 'Июн', 'Июл', 'Авг', 'Сен', 'Окт', 'Ноя', 'Дек'],
    'en': ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec'],
}

CHART_MONTHS = 6


def current_period(today=None):
    today = today or date.today()
    return today.month, today.year


def month_labels(language='uz'):
    return MONTH_ABBREVIATIONS.get(language, MONTH_ABBREVIATIONS['uz'])


def _sum(qs, field):
    return qs.aggregate(total=Sum(field))['total'] or Decimal('0')


def _scoped_payments(admin=None, active_only=False):
    qs = Payment.objects.all()
    if admin is not None:
        qs = qs.filter(tenant__admin=admin)
    if active_only:
        qs = qs.filter(tenant__is_active=True)
    return qs


def _paid_unpaid_counts(payments):
    total_due = F('expected_amount') + F('carry_over_debt')
    paid = payments.filter(paid_amount__gte=total_due).order_by().values('tenant_id').distinct().count()
    unpaid = payments.filter(paid_amount__lt=total_due).order_by().values('tenant_id').distinct().count()
    return paid, unpaid


# ═══════════════════════════════════════════════════════════
#  DASHBOARD CARDS
# ═══════════════════════════════════════════════════════════

def owner_stats(month, year):
    admin_count = UserRole.objects.filter(role=UserRole.ADMIN).count()
    blocked = AdminStatus.objects.filter(
        is_blocked=True, admin__user_role__role=UserRole.ADMIN
    ).count()

    payments = _scoped_payments().filter(month=month, year=year)
    paid_tenants, unpaid_tenants = _paid_unpaid_counts(payments)

    return {
        'total_income': float(_sum(payments, 'paid_amount')),
        'total_admins': admin_count,
        'active_admins': admin_count - blocked,
        'blocked_admins': blocked,
        'total_warehouses': Warehouse.objects.count(),
        'total_tenants': Tenant.objects.filter(is_active=True).count(),
        'paid_tenants': paid_tenants,
        'unpaid_tenants': unpaid_tenants,
        'month': month,
        'year': year,
    }


def admin_stats(admin, month, year):
    payments = _scoped_payments(admin, active_only=True).filter(month=month, year=year)
    paid_tenants, unpaid_tenants = _paid_unpaid_counts(payments)

    return {
        'total_income': float(_sum(payments, 'paid_amount')),
        'total_tenants': Tenant.objects.filter(admin=admin, is_active=True).count(),
        'paid_tenants': paid_tenants,
        'unpaid_tenants': unpaid_tenants,
        'total_warehouses': Warehouse.objects.filter(admin=admin).count(),
        'month': month,
        'year': year,
    }


# ═══════════════════════════════════════════════════════════
#  CHART SERIES
# ═══════════════════════════════════════════════════════════

def _per_month(admin, year, months):
    rows = (
        _scoped_payments(admin)
        .filter(year=year, month__lte=months)
        .values('month')
        .annotate(expected=Sum('expected_amount'), paid=Sum('paid_amount'))
    )
    return {r['month']: r for r in rows}


def monthly_income(year, admin=None, months=CHART_MONTHS, language='uz'):
    labels = month_labels(language)
    by_month = _per_month(admin, year, months)
    return [
        {
            'month': labels[m - 1],
            'income': float(by_month.get(m, {}).get('paid') or 0),
        }
        for m in range(1, months + 1)
    ]


def monthly_trend(year, admin=None, months=CHART_MONTHS, language='uz'):
    labels = month_labels(language)
    by_month = _per_month(admin, year, months)
    return [
        {
            'month': labels[m - 1],
            'expected': float(by_month.get(m, {}).get('expected') or 0),
            'paid': float(by_month.get(m, {}).get('paid') or 0),
        }
        for m in range(1, months + 1)
    ]


def product_type_stats(admin=None):
    qs = Tenant.objects.filter(is_active=True)
    if admin is not None:
        qs = qs.filter(admin=admin)
    rows = qs.values('product_type').annotate(value=Count('id')).order_by('-value', 'product_type')
    return [{'name': r['product_type'], 'value': r['value']} for r in rows]


def admin_performance(month, year, limit=5):
    """Income and active tenants per admin for the month, best first."""
    admins = User.objects.filter(user_role__role=UserRole.ADMIN)
    result = []
    for admin in admins:
        tenants = Tenant.objects.filter(admin=admin, is_active=True)
        income = _sum(
            Payment.objects.filter(tenant__in=tenants, month=month, year=year),
            'paid_amount',
        )
        result.append({
            'admin_id': str(admin.id),
            'name': admin.full_name or 'Admin',
            'income': float(income),
            'tenants': tenants.count(),
        })
    result.sort(key=lambda r: r['income'], reverse=True)
    return result[:limit]


def payment_summary(month, year, admin=None):
    payments = _scoped_payments(admin).filter(month=month, year=year)
    expected = _sum(payments, 'expected_amount')
    paid = _sum(payments, 'paid_amount')
    percentage = round(float(paid / expected * 100), 1) if expected > 0 else 0
    return {
        'expected': float(expected),
        'paid': float(paid),
        'unpaid': float(expected - paid),
        'percentage': percentage,
    }
