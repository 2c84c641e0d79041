"""
Ombor — Tests
Ledger arithmetic, role gate, scoping, statistics, reminders,
provisioning and export.
"""
import io
from datetime import date
from decimal import Decimal
from unittest import mock

from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from django.utils import timezone
from openpyxl import load_workbook
from rest_framework.test import APIClient

from core import ledger, stats
from core.exporting import build_workbook, export_filename
from core.models import (
    User, UserRole, AdminStatus, Warehouse, Tenant, Payment, Notification,
)
from core.notifications import (
    create_notification, format_currency, notify_owner, send_payment_reminders,
)
from core.permissions import AccessDecision, BLOCKED_MESSAGE, ROUTE_ROLES, resolve_access
from core.provisioning import ProvisioningError, create_admin


class BaseTestCase(TestCase):
    """Owner, two admins, one warehouse each and three tenants."""

    def setUp(self):
        self.client = APIClient()

        self.owner = User.objects.create_user(
            email='owner@ombor.uz', full_name='Ombor Egasi', password='Owner123'
        )
        UserRole.objects.create(user=self.owner, role=UserRole.OWNER)

        self.admin1 = self.make_admin('aziz@ombor.uz', 'Aziz Karimov', 'Admin123')
        self.admin2 = self.make_admin('dilnoza@ombor.uz', 'Dilnoza Yusupova', 'Admin456')

        self.wh1 = Warehouse.objects.create(
            admin=self.admin1, name='Chilonzor ombori', address='Toshkent, Chilonzor 12'
        )
        self.wh2 = Warehouse.objects.create(
            admin=self.admin2, name='Yunusobod ombori', address='Toshkent, Yunusobod 19'
        )

        self.tenant1 = Tenant.objects.create(
            admin=self.admin1, warehouse=self.wh1, full_name='Bekzod Rahimov',
            phone='+998901112233', product_type='Oziq-ovqat',
            monthly_rent=Decimal('1000000'),
        )
        self.tenant2 = Tenant.objects.create(
            admin=self.admin1, warehouse=self.wh1, full_name='Shahlo Nazarova',
            phone='+998902223344', product_type='Elektronika',
            monthly_rent=Decimal('500000'),
        )
        self.tenant3 = Tenant.objects.create(
            admin=self.admin2, warehouse=self.wh2, full_name='Malika Ergasheva',
            phone='+998904445566', product_type='Oziq-ovqat',
            monthly_rent=Decimal('800000'),
        )

    def make_admin(self, email, full_name, password):
        admin = User.objects.create_user(
            email=email, full_name=full_name, password=password, phone='+998900000000'
        )
        UserRole.objects.create(user=admin, role=UserRole.ADMIN)
        AdminStatus.objects.create(admin=admin)
        return admin

    def block(self, admin):
        AdminStatus.objects.filter(admin=admin).update(is_blocked=True)
        return User.objects.get(pk=admin.pk)

    def login_as(self, email, password):
        """Helper to login and set auth token."""
        response = self.client.post('/api/auth/login/', {
            'email': email, 'password': password,
        }, format='json')
        if response.status_code == 200:
            token = response.data['access']
            self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return response


# ═══════════════════════════════════════════════════════════
#  LEDGER
# ═══════════════════════════════════════════════════════════

class LedgerTests(BaseTestCase):

    def test_previous_period_rolls_year(self):
        self.assertEqual(ledger.previous_period(1, 2026), (12, 2025))
        self.assertEqual(ledger.previous_period(7, 2026), (6, 2026))

    def test_carry_over_from_previous_month(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 600000)
        feb, created = ledger.record_payment(self.tenant1, 2, 2026, 1000000, 0)
        self.assertTrue(created)
        self.assertEqual(feb.carry_over_debt, Decimal('400000'))
        self.assertEqual(feb.total_due, Decimal('1400000'))
        self.assertEqual(feb.status, Payment.STATUS_UNPAID)

    def test_carry_over_across_year_boundary(self):
        ledger.record_payment(self.tenant1, 12, 2025, 1000000, 0)
        jan, _ = ledger.record_payment(self.tenant1, 1, 2026, 1000000, 0)
        self.assertEqual(jan.carry_over_debt, Decimal('1000000'))

    def test_carry_over_includes_previous_carry(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 600000)
        ledger.record_payment(self.tenant1, 2, 2026, 1000000, 1000000)
        mar, _ = ledger.record_payment(self.tenant1, 3, 2026, 1000000, 0)
        # Feb: 1 000 000 + 400 000 due, 1 000 000 paid
        self.assertEqual(mar.carry_over_debt, Decimal('400000'))

    def test_no_carry_over_without_previous_row(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 0)
        mar, _ = ledger.record_payment(self.tenant1, 3, 2026, 1000000, 0)
        self.assertEqual(mar.carry_over_debt, Decimal('0'))

    def test_overpayment_does_not_carry_negative(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 1500000)
        feb, _ = ledger.record_payment(self.tenant1, 2, 2026, 1000000, 0)
        self.assertEqual(feb.carry_over_debt, Decimal('0'))

    def test_carry_over_is_not_recomputed(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 0)
        ledger.record_payment(self.tenant1, 2, 2026, 1000000, 0)
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 1000000)

        feb = Payment.objects.get(tenant=self.tenant1, month=2, year=2026)
        self.assertEqual(feb.carry_over_debt, Decimal('1000000'))

    def test_update_only_changes_paid_notes_and_date(self):
        jan, created = ledger.record_payment(self.tenant1, 1, 2026, 1000000, 0)
        self.assertTrue(created)
        self.assertIsNone(jan.payment_date)

        jan2, created = ledger.record_payment(self.tenant1, 1, 2026, 2000000, 500000,
                                              notes='Naqd')
        self.assertFalse(created)
        jan2.refresh_from_db()
        self.assertEqual(jan2.pk, jan.pk)
        self.assertEqual(jan2.expected_amount, Decimal('1000000'))
        self.assertEqual(jan2.paid_amount, Decimal('500000'))
        self.assertEqual(jan2.notes, 'Naqd')
        self.assertIsNotNone(jan2.payment_date)
        self.assertEqual(Payment.objects.filter(tenant=self.tenant1).count(), 1)

    def test_invalid_month_rejected(self):
        with self.assertRaises(ValueError):
            ledger.record_payment(self.tenant1, 13, 2026, 1000000, 0)

    def test_payment_status(self):
        self.assertEqual(ledger.payment_status(1000, 0, 1000), Payment.STATUS_PAID)
        self.assertEqual(ledger.payment_status(1000, 0, 1200), Payment.STATUS_PAID)
        self.assertEqual(ledger.payment_status(1000, 200, 1000), Payment.STATUS_PARTIAL)
        self.assertEqual(ledger.payment_status(1000, 0, 0), Payment.STATUS_UNPAID)

    def test_one_row_per_tenant_period(self):
        Payment.objects.create(tenant=self.tenant1, month=1, year=2026,
                               expected_amount=Decimal('1000000'))
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Payment.objects.create(tenant=self.tenant1, month=1, year=2026,
                                       expected_amount=Decimal('1000000'))

    def test_split_advance_remainder_on_last_share(self):
        shares = ledger.split_advance(Decimal('100'), 3)
        self.assertEqual(shares, [Decimal('33.33'), Decimal('33.33'), Decimal('33.34')])
        self.assertEqual(sum(shares), Decimal('100'))

    def test_split_advance_even(self):
        shares = ledger.split_advance(Decimal('1000000'), 4)
        self.assertEqual(shares, [Decimal('250000')] * 4)

    def test_split_advance_small_amount_over_many_months(self):
        shares = ledger.split_advance(Decimal('1.00'), 36)
        self.assertEqual(shares[:35], [Decimal('0.02')] * 35)
        self.assertEqual(shares[-1], Decimal('0.30'))
        self.assertEqual(sum(shares), Decimal('1.00'))
        self.assertTrue(all(s >= 0 for s in shares))

        shares = ledger.split_advance(Decimal('1000'), 6)
        self.assertEqual(shares[:5], [Decimal('166.66')] * 5)
        self.assertEqual(shares[-1], Decimal('166.70'))

    def test_advance_small_amount_never_stores_negative(self):
        rows = ledger.record_advance_payment(self.tenant1, 1, 2026, Decimal('1.00'), 36)
        self.assertEqual(len(rows), 36)
        self.assertTrue(all(p.paid_amount >= 0 for p in rows))
        self.assertEqual(sum(p.paid_amount for p in rows), Decimal('1.00'))

    def test_split_advance_needs_a_month(self):
        with self.assertRaises(ValueError):
            ledger.split_advance(Decimal('100'), 0)

    def test_advance_creates_consecutive_months(self):
        rows = ledger.record_advance_payment(self.tenant1, 11, 2025, Decimal('3000000'), 3)
        self.assertEqual([(p.month, p.year) for p in rows], [(11, 2025), (12, 2025), (1, 2026)])
        for p in rows:
            self.assertEqual(p.expected_amount, Decimal('1000000'))
            self.assertEqual(p.paid_amount, Decimal('1000000'))
            self.assertEqual(p.carry_over_debt, Decimal('0'))
            self.assertEqual(p.status, Payment.STATUS_PAID)

    def test_advance_adds_to_existing_row(self):
        ledger.record_payment(self.tenant1, 11, 2025, 1000000, 200000)
        rows = ledger.record_advance_payment(self.tenant1, 11, 2025, Decimal('2000000'), 2)

        nov, dec = rows
        nov.refresh_from_db()
        self.assertEqual(nov.paid_amount, Decimal('1200000'))
        self.assertEqual(dec.carry_over_debt, Decimal('0'))
        self.assertEqual(Payment.objects.filter(tenant=self.tenant1).count(), 2)

    def test_advance_later_month_sees_earlier_shortfall(self):
        rows = ledger.record_advance_payment(self.tenant1, 1, 2026, Decimal('1000000'), 2)
        jan, feb = rows
        self.assertEqual(jan.paid_amount, Decimal('500000'))
        self.assertEqual(feb.carry_over_debt, Decimal('500000'))
        self.assertEqual(feb.remaining, Decimal('1000000'))

    def test_period_summary(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 600000)
        ledger.record_payment(self.tenant1, 2, 2026, 1000000, 400000)
        ledger.record_payment(self.tenant2, 2, 2026, 500000, 500000)

        totals = ledger.period_summary(list(Payment.objects.filter(month=2, year=2026)))
        self.assertEqual(totals['expected'], Decimal('1900000'))
        self.assertEqual(totals['paid'], Decimal('900000'))
        self.assertEqual(totals['remaining'], Decimal('1000000'))


# ═══════════════════════════════════════════════════════════
#  ROLE GATE
# ═══════════════════════════════════════════════════════════

class RoleGateTests(BaseTestCase):

    def test_unauthenticated_goes_to_login(self):
        self.assertEqual(resolve_access(None), AccessDecision.LOGIN)
        self.assertEqual(resolve_access(AnonymousUser(), ROUTE_ROLES['/dashboard']),
                         AccessDecision.LOGIN)

    def test_role_mismatch_goes_to_dashboard(self):
        self.assertEqual(resolve_access(self.admin1, ROUTE_ROLES['/dashboard/admins']),
                         AccessDecision.DASHBOARD)
        self.assertEqual(resolve_access(self.owner, ROUTE_ROLES['/dashboard/payments']),
                         AccessDecision.DASHBOARD)

    def test_allowed_roles(self):
        self.assertEqual(resolve_access(self.owner, ROUTE_ROLES['/dashboard/admins']),
                         AccessDecision.ALLOW)
        self.assertEqual(resolve_access(self.admin1, ROUTE_ROLES['/dashboard/tenants']),
                         AccessDecision.ALLOW)
        self.assertEqual(resolve_access(self.admin1, ROUTE_ROLES['/dashboard/profile']),
                         AccessDecision.ALLOW)

    def test_profile_route_for_owner_and_admin_only(self):
        member = User.objects.create_user(
            email='mijoz@ombor.uz', full_name='Oddiy Foydalanuvchi', password='User1234'
        )
        UserRole.objects.create(user=member, role=UserRole.USER)
        self.assertEqual(resolve_access(member, ROUTE_ROLES['/dashboard/profile']),
                         AccessDecision.DASHBOARD)
        self.assertEqual(resolve_access(self.owner, ROUTE_ROLES['/dashboard/profile']),
                         AccessDecision.ALLOW)

    def test_blocked_admin_always_blocked(self):
        blocked = self.block(self.admin1)
        for roles in ROUTE_ROLES.values():
            self.assertEqual(resolve_access(blocked, roles), AccessDecision.BLOCKED)

    def test_route_check_anonymous(self):
        resp = self.client.get('/api/auth/route-check/', {'path': '/dashboard/admins'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['decision'], 'login')
        self.assertEqual(resp.data['redirect'], '/auth')

    def test_route_check_admin_on_owner_page(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/auth/route-check/', {'path': '/dashboard/admins/'})
        self.assertEqual(resp.data['path'], '/dashboard/admins')
        self.assertEqual(resp.data['decision'], 'dashboard')
        self.assertEqual(resp.data['redirect'], '/dashboard')

    def test_route_check_owner_allowed(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/auth/route-check/', {'path': '/dashboard/admins'})
        self.assertEqual(resp.data['decision'], 'allow')
        self.assertIsNone(resp.data['redirect'])


# ═══════════════════════════════════════════════════════════
#  AUTH & PROFILE
# ═══════════════════════════════════════════════════════════

class AuthTests(BaseTestCase):

    def test_owner_login(self):
        resp = self.login_as('owner@ombor.uz', 'Owner123')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['role'], 'owner')
        self.assertIn('access', resp.data)

    def test_login_is_case_insensitive_on_email(self):
        resp = self.login_as('AZIZ@ombor.uz', 'Admin123')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['role'], 'admin')

    def test_invalid_password(self):
        resp = self.login_as('aziz@ombor.uz', 'wrong')
        self.assertEqual(resp.status_code, 400)

    def test_blocked_admin_cannot_login(self):
        self.block(self.admin1)
        resp = self.login_as('aziz@ombor.uz', 'Admin123')
        self.assertEqual(resp.status_code, 400)
        self.assertIn(BLOCKED_MESSAGE, str(resp.data))

    def test_blocked_admin_token_denied(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        self.block(self.admin1)
        resp = self.client.get('/api/warehouses/')
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data['detail'], BLOCKED_MESSAGE)

    def test_me(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/auth/me/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['role'], 'admin')
        self.assertFalse(resp.data['is_blocked'])

    def test_unauthenticated_request(self):
        resp = self.client.get('/api/tenants/')
        self.assertEqual(resp.status_code, 401)

    def test_profile_update(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.patch('/api/profile/', {
            'full_name': 'Aziz Karimov Jr', 'phone': '+998907776655',
        }, format='json')
        self.assertEqual(resp.status_code, 200)
        self.admin1.refresh_from_db()
        self.assertEqual(self.admin1.full_name, 'Aziz Karimov Jr')
        self.assertEqual(self.admin1.phone, '+998907776655')

    def test_profile_validation(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.patch('/api/profile/', {'full_name': 'A'}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('full_name', resp.data)

        resp = self.client.patch('/api/profile/', {'phone': '12345'}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('phone', resp.data)

        resp = self.client.patch('/api/profile/', {'phone': '1' * 21}, format='json')
        self.assertEqual(resp.status_code, 400)


# ═══════════════════════════════════════════════════════════
#  WAREHOUSES & TENANTS
# ═══════════════════════════════════════════════════════════

class ScopingTests(BaseTestCase):

    def test_admin_sees_only_own_tenants(self):
        self.login_as('dilnoza@ombor.uz', 'Admin456')
        resp = self.client.get('/api/tenants/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data['results']), 1)
        self.assertEqual(resp.data['results'][0]['full_name'], 'Malika Ergasheva')

        resp = self.client.get(f'/api/tenants/{self.tenant1.id}/')
        self.assertEqual(resp.status_code, 404)

    def test_owner_sees_all_tenants(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/tenants/')
        self.assertEqual(len(resp.data['results']), 3)

        resp = self.client.get('/api/tenants/', {'admin_id': str(self.admin1.id)})
        self.assertEqual(len(resp.data['results']), 2)

    def test_owner_malformed_admin_filter(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        for url in ('/api/tenants/', '/api/warehouses/', '/api/payments/',
                    '/api/tenants/export/'):
            resp = self.client.get(url, {'admin_id': 'not-a-uuid'})
            self.assertEqual(resp.status_code, 400, url)
            self.assertIn('admin_id', resp.data)

    def test_owner_cannot_write(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.post('/api/warehouses/', {'name': 'Yangi ombor'}, format='json')
        self.assertEqual(resp.status_code, 403)

        resp = self.client.patch(f'/api/tenants/{self.tenant1.id}/',
                                 {'phone': '+998900000001'}, format='json')
        self.assertEqual(resp.status_code, 403)

    def test_admin_creates_warehouse(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.post('/api/warehouses/', {
            'name': 'Sergeli ombori', 'address': 'Toshkent, Sergeli 5',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(Warehouse.objects.get(name='Sergeli ombori').admin, self.admin1)

    def test_admin_creates_tenant_in_own_warehouse(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.post('/api/tenants/', {
            'warehouse': str(self.wh1.id),
            'full_name': 'Javlon Tursunov',
            'phone': '+998903334455',
            'product_type': 'Qurilish materiallari',
            'monthly_rent': '1800000',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        tenant = Tenant.objects.get(full_name='Javlon Tursunov')
        self.assertEqual(tenant.admin, self.admin1)

        notification = Notification.objects.get(user=self.owner)
        self.assertEqual(notification.title, 'Yangi ijarachi')
        self.assertEqual(notification.related_type, 'tenant')
        self.assertEqual(notification.related_id, str(tenant.id))
        self.assertIn('Javlon Tursunov', notification.message)

    def test_admin_cannot_use_foreign_warehouse(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.post('/api/tenants/', {
            'warehouse': str(self.wh2.id),
            'full_name': 'Javlon Tursunov',
            'phone': '+998903334455',
            'product_type': 'Qurilish materiallari',
            'monthly_rent': '1800000',
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('warehouse', resp.data)

    def test_admin_cannot_delete_foreign_tenant(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.delete(f'/api/tenants/{self.tenant3.id}/')
        self.assertEqual(resp.status_code, 404)
        self.assertTrue(Tenant.objects.filter(id=self.tenant3.id).exists())

    def test_tenant_search(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/tenants/', {'search': 'elektron'})
        self.assertEqual(len(resp.data['results']), 1)

        resp = self.client.get('/api/tenants/', {'search': 'chilonzor'})
        self.assertEqual(len(resp.data['results']), 2)

    def test_warehouse_search(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/warehouses/', {'search': 'yunusobod'})
        self.assertEqual(len(resp.data['results']), 1)


# ═══════════════════════════════════════════════════════════
#  PAYMENTS API
# ═══════════════════════════════════════════════════════════

class PaymentApiTests(BaseTestCase):

    def test_record_payment_defaults_to_monthly_rent(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.post('/api/payments/', {
            'tenant_id': str(self.tenant1.id), 'month': 1, 'year': 2026,
            'paid_amount': '600000',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['status'], 'partial')

        payment = Payment.objects.get(tenant=self.tenant1, month=1, year=2026)
        self.assertEqual(payment.expected_amount, Decimal('1000000'))

        resp = self.client.post('/api/payments/', {
            'tenant_id': str(self.tenant1.id), 'month': 1, 'year': 2026,
            'paid_amount': '1000000',
        }, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['status'], 'paid')

    def test_cannot_record_for_foreign_tenant(self):
        self.login_as('dilnoza@ombor.uz', 'Admin456')
        resp = self.client.post('/api/payments/', {
            'tenant_id': str(self.tenant1.id), 'month': 1, 'year': 2026,
            'paid_amount': '600000',
        }, format='json')
        self.assertEqual(resp.status_code, 404)

    def test_owner_cannot_record(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.post('/api/payments/', {
            'tenant_id': str(self.tenant1.id), 'month': 1, 'year': 2026,
            'paid_amount': '600000',
        }, format='json')
        self.assertEqual(resp.status_code, 403)

    def test_invalid_month(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.post('/api/payments/', {
            'tenant_id': str(self.tenant1.id), 'month': 13, 'year': 2026,
            'paid_amount': '600000',
        }, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_advance_payment(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.post('/api/payments/advance/', {
            'tenant_id': str(self.tenant2.id), 'start_month': 12, 'start_year': 2025,
            'amount': '100', 'months': 3,
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(len(resp.data['payments']), 3)

        paid = [p.paid_amount for p in Payment.objects.filter(tenant=self.tenant2)
                .order_by('year', 'month')]
        self.assertEqual(paid, [Decimal('33.33'), Decimal('33.33'), Decimal('33.34')])

    def test_advance_amount_must_be_positive(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.post('/api/payments/advance/', {
            'tenant_id': str(self.tenant2.id), 'start_month': 1, 'start_year': 2026,
            'amount': '0', 'months': 3,
        }, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_list_by_period_and_scope(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 600000)
        ledger.record_payment(self.tenant1, 2, 2026, 1000000, 0)
        ledger.record_payment(self.tenant3, 1, 2026, 800000, 0)

        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/payments/', {'month': 1, 'year': 2026})
        self.assertEqual(len(resp.data['results']), 1)

        self.client.credentials()
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/payments/', {'month': 1, 'year': 2026})
        self.assertEqual(len(resp.data['results']), 2)

    def test_payment_search(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 600000, notes='Naqd')
        ledger.record_payment(self.tenant2, 1, 2026, 500000, 0)

        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/payments/', {'month': 1, 'year': 2026, 'search': 'naqd'})
        self.assertEqual(len(resp.data['results']), 1)
        resp = self.client.get('/api/payments/', {'month': 1, 'year': 2026, 'search': 'shahlo'})
        self.assertEqual(len(resp.data['results']), 1)

    def test_summary(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 600000)
        ledger.record_payment(self.tenant2, 1, 2026, 500000, 500000)

        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/payments/summary/', {'month': 1, 'year': 2026})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['count'], 2)
        self.assertEqual(resp.data['expected'], 1500000.0)
        self.assertEqual(resp.data['paid'], 1100000.0)
        self.assertEqual(resp.data['remaining'], 400000.0)

    def test_export_payments(self):
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 600000)
        self.login_as('aziz@ombor.uz', 'Admin123')

        resp = self.client.get('/api/payments/export/', {'month': 1, 'year': 2026})
        self.assertEqual(resp.status_code, 200)
        self.assertIn('tolovlar_2026_01_', resp['Content-Disposition'])

        ws = load_workbook(io.BytesIO(resp.content)).active
        self.assertEqual(ws.title, "To'lovlar")
        self.assertEqual(ws['A2'].value, 'Bekzod Rahimov')
        self.assertEqual(ws['H2'].value, 'Qisman')

    def test_export_empty_month(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/payments/export/', {'month': 5, 'year': 2026})
        self.assertEqual(resp.status_code, 400)


# ═══════════════════════════════════════════════════════════
#  ADMINS & PROVISIONING
# ═══════════════════════════════════════════════════════════

class AdminManagementTests(BaseTestCase):

    def test_only_owner_lists_admins(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/admins/')
        self.assertEqual(resp.status_code, 403)

        self.client.credentials()
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/admins/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data['results']), 2)

    def test_create_admin(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.post('/api/admins/', {
            'email': 'sardor@ombor.uz', 'password': 'Secret12',
            'full_name': 'Sardor Aliyev', 'phone': '+998909998877',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(resp.data['success'])

        admin = User.objects.get(email='sardor@ombor.uz')
        self.assertEqual(admin.role, UserRole.ADMIN)
        self.assertFalse(admin.admin_status.is_blocked)
        self.assertTrue(admin.check_password('Secret12'))

    def test_create_admin_requires_all_fields(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.post('/api/admins/', {
            'email': 'sardor@ombor.uz', 'password': 'Secret12', 'full_name': 'Sardor Aliyev',
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.data['success'])
        self.assertIn('phone', resp.data['error'])

    def test_create_admin_short_password(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.post('/api/admins/', {
            'email': 'sardor@ombor.uz', 'password': '12345',
            'full_name': 'Sardor Aliyev', 'phone': '+998909998877',
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(User.objects.filter(email='sardor@ombor.uz').exists())

    def test_create_admin_duplicate_email(self):
        with self.assertRaises(ProvisioningError):
            create_admin('aziz@ombor.uz', 'Secret12', 'Aziz', '+998909998877')

    def test_create_admin_rolls_back_user(self):
        with mock.patch('core.provisioning.assign_role',
                        side_effect=IntegrityError('role insert failed')):
            with self.assertRaises(ProvisioningError):
                create_admin('sardor@ombor.uz', 'Secret12', 'Sardor Aliyev', '+998909998877')
        self.assertFalse(User.objects.filter(email='sardor@ombor.uz').exists())

    def test_block_and_unblock(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.post(f'/api/admins/{self.admin1.id}/block/')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data['admin']['is_blocked'])

        status_row = AdminStatus.objects.get(admin=self.admin1)
        self.assertTrue(status_row.is_blocked)
        self.assertIsNotNone(status_row.blocked_at)
        self.assertEqual(status_row.blocked_reason, 'Owner tomonidan bloklandi')
        self.assertTrue(Notification.objects.filter(
            user=self.admin1, type=Notification.TYPE_WARNING).exists())

        resp = self.client.post(f'/api/admins/{self.admin1.id}/unblock/')
        self.assertEqual(resp.status_code, 200)
        status_row.refresh_from_db()
        self.assertFalse(status_row.is_blocked)
        self.assertIsNone(status_row.blocked_at)

    def test_block_without_status_row(self):
        AdminStatus.objects.filter(admin=self.admin2).delete()
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.post(f'/api/admins/{self.admin2.id}/block/')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(AdminStatus.objects.get(admin=self.admin2).is_blocked)

    def test_admin_search_and_export(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/admins/', {'search': 'dilnoza'})
        self.assertEqual(len(resp.data['results']), 1)

        resp = self.client.get('/api/admins/export/')
        self.assertEqual(resp.status_code, 200)
        ws = load_workbook(io.BytesIO(resp.content)).active
        self.assertEqual([c.value for c in ws[1]], ['Admin ismi', 'Email', 'Telefon raqami', 'Holat'])
        self.assertEqual(ws.max_row, 3)


class OwnerSetupTests(BaseTestCase):

    def test_setup_status(self):
        resp = self.client.get('/api/setup/status/')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data['owner_exists'])

    @override_settings(OWNER_SECRET_KEY='')
    def test_unset_secret_always_rejected(self):
        UserRole.objects.filter(role=UserRole.OWNER).delete()
        resp = self.client.post('/api/setup/owner/', {
            'email': 'boss@ombor.uz', 'password': 'Boss1234',
            'full_name': 'Boss', 'secret_key': '',
        }, format='json')
        self.assertEqual(resp.status_code, 401)

    @override_settings(OWNER_SECRET_KEY='s3cret')
    def test_wrong_secret(self):
        resp = self.client.post('/api/setup/owner/', {
            'email': 'boss@ombor.uz', 'password': 'Boss1234',
            'full_name': 'Boss', 'secret_key': 'guess',
        }, format='json')
        self.assertEqual(resp.status_code, 401)

    @override_settings(OWNER_SECRET_KEY='s3cret')
    def test_owner_already_exists(self):
        resp = self.client.post('/api/setup/owner/', {
            'email': 'boss@ombor.uz', 'password': 'Boss1234',
            'full_name': 'Boss', 'secret_key': 's3cret',
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['error'], 'Owner already exists')

    @override_settings(OWNER_SECRET_KEY='s3cret')
    def test_create_owner(self):
        UserRole.objects.filter(role=UserRole.OWNER).delete()
        resp = self.client.post('/api/setup/owner/', {
            'email': 'boss@ombor.uz', 'password': 'Boss1234',
            'full_name': 'Boss', 'secret_key': 's3cret',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(User.objects.get(email='boss@ombor.uz').role, UserRole.OWNER)


# ═══════════════════════════════════════════════════════════
#  STATISTICS
# ═══════════════════════════════════════════════════════════

class StatisticsTests(BaseTestCase):

    def setUp(self):
        super().setUp()
        ledger.record_payment(self.tenant1, 1, 2026, 1000000, 1000000)
        ledger.record_payment(self.tenant2, 1, 2026, 500000, 200000)
        ledger.record_payment(self.tenant3, 1, 2026, 800000, 0)

    def test_owner_stats(self):
        data = stats.owner_stats(1, 2026)
        self.assertEqual(data['total_income'], 1200000.0)
        self.assertEqual(data['total_admins'], 2)
        self.assertEqual(data['active_admins'], 2)
        self.assertEqual(data['blocked_admins'], 0)
        self.assertEqual(data['total_warehouses'], 2)
        self.assertEqual(data['total_tenants'], 3)
        self.assertEqual(data['paid_tenants'], 1)
        self.assertEqual(data['unpaid_tenants'], 2)

    def test_blocked_admin_counts(self):
        self.block(self.admin2)
        data = stats.owner_stats(1, 2026)
        self.assertEqual(data['active_admins'], 1)
        self.assertEqual(data['blocked_admins'], 1)

    def test_paid_count_includes_carry_over(self):
        ledger.record_payment(self.tenant1, 2, 2026, 1000000, 1000000)
        ledger.record_payment(self.tenant2, 2, 2026, 500000, 500000)
        data = stats.admin_stats(self.admin1, 2, 2026)
        # tenant2 still owes the 300 000 carried from January
        self.assertEqual(data['paid_tenants'], 1)
        self.assertEqual(data['unpaid_tenants'], 1)

    def test_admin_stats_scoped(self):
        data = stats.admin_stats(self.admin1, 1, 2026)
        self.assertEqual(data['total_income'], 1200000.0)
        self.assertEqual(data['total_tenants'], 2)
        self.assertEqual(data['total_warehouses'], 1)

    def test_payment_summary(self):
        data = stats.payment_summary(1, 2026)
        self.assertEqual(data['expected'], 2300000.0)
        self.assertEqual(data['paid'], 1200000.0)
        self.assertEqual(data['unpaid'], 1100000.0)
        self.assertEqual(data['percentage'], 52.2)

    def test_payment_summary_empty(self):
        self.assertEqual(stats.payment_summary(6, 2026)['percentage'], 0)

    def test_monthly_income(self):
        series = stats.monthly_income(2026)
        self.assertEqual(len(series), 6)
        self.assertEqual(series[0], {'month': 'Yan', 'income': 1200000.0})
        self.assertEqual(series[1]['income'], 0.0)

        series = stats.monthly_income(2026, admin=self.admin2, language='en')
        self.assertEqual(series[0], {'month': 'Jan', 'income': 0.0})

    def test_monthly_trend(self):
        series = stats.monthly_trend(2026, admin=self.admin1)
        self.assertEqual(series[0]['expected'], 1500000.0)
        self.assertEqual(series[0]['paid'], 1200000.0)

    def test_product_types(self):
        self.assertEqual(stats.product_type_stats(), [
            {'name': 'Oziq-ovqat', 'value': 2},
            {'name': 'Elektronika', 'value': 1},
        ])

    def test_admin_performance(self):
        rows = stats.admin_performance(1, 2026)
        self.assertEqual(rows[0]['name'], 'Aziz Karimov')
        self.assertEqual(rows[0]['income'], 1200000.0)
        self.assertEqual(rows[0]['tenants'], 2)
        self.assertEqual(rows[1]['income'], 0.0)

    def test_dashboard_owner(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/dashboard/', {'month': 1, 'year': 2026})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['role'], 'owner')
        self.assertIn('admin_performance', resp.data)

    def test_dashboard_admin(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/dashboard/', {'month': 1, 'year': 2026})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['stats']['total_tenants'], 2)
        self.assertNotIn('admin_performance', resp.data)

    def test_statistics_admin(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/statistics/', {'month': 1, 'year': 2026})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['payment_summary']['expected'], 1500000.0)

    def test_statistics_bad_month(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/statistics/', {'month': 14, 'year': 2026})
        self.assertEqual(resp.status_code, 400)


# ═══════════════════════════════════════════════════════════
#  NOTIFICATIONS & REMINDERS
# ═══════════════════════════════════════════════════════════

class NotificationTests(BaseTestCase):

    def test_format_currency(self):
        self.assertEqual(format_currency(1500000), "1 500 000 so'm")
        self.assertEqual(format_currency(Decimal('1234.5')), "1 234.50 so'm")

    def test_notify_owner(self):
        notification = notify_owner('Salom', 'Test')
        self.assertEqual(notification.user, self.owner)

    def test_notify_owner_without_owner(self):
        UserRole.objects.filter(role=UserRole.OWNER).delete()
        self.assertIsNone(notify_owner('Salom', 'Test'))

    def test_reminders_outside_window(self):
        result = send_payment_reminders(date(2026, 1, 10))
        self.assertTrue(result['skipped'])
        self.assertEqual(Notification.objects.count(), 0)

    def test_reminders_group_by_admin(self):
        ledger.record_payment(self.tenant2, 1, 2026, 500000, 500000)
        ledger.record_payment(self.tenant3, 1, 2026, 800000, 300000)

        result = send_payment_reminders(date(2026, 1, 29))
        self.assertEqual(result['sent'], 2)
        self.assertEqual(result['unpaid_tenants'], 2)

        msg1 = Notification.objects.get(user=self.admin1).message
        self.assertEqual(
            msg1, "1 ta ijarachi to'lovini amalga oshirmagan: Bekzod Rahimov. Jami: 1 000 000 so'm"
        )
        note2 = Notification.objects.get(user=self.admin2)
        self.assertEqual(note2.title, "To'lov eslatmasi")
        self.assertEqual(note2.type, Notification.TYPE_PAYMENT_REMINDER)
        self.assertEqual(note2.related_type, 'payment')
        self.assertIn("Jami: 500 000 so'm", note2.message)

    def test_reminder_lists_three_names(self):
        for name in ['Anvar', 'Botir']:
            Tenant.objects.create(admin=self.admin1, warehouse=self.wh1, full_name=name,
                                  phone='+998900000000', product_type='Mebel',
                                  monthly_rent=Decimal('100000'))
        Tenant.objects.create(admin=self.admin1, warehouse=self.wh1, full_name='Nofaol',
                              phone='+998900000000', product_type='Mebel',
                              monthly_rent=Decimal('100000'), is_active=False)

        send_payment_reminders(date(2026, 1, 31))
        msg = Notification.objects.get(user=self.admin1).message
        self.assertTrue(msg.startswith("4 ta ijarachi to'lovini amalga oshirmagan: Anvar, Bekzod Rahimov, Botir"))
        self.assertIn(' va yana 1 ta', msg)
        self.assertNotIn('Nofaol', msg)

    @override_settings(REMINDER_DAYS_BEFORE_MONTH_END=31)
    def test_reminders_once_per_day(self):
        today = timezone.localdate()
        self.assertEqual(send_payment_reminders(today)['sent'], 2)
        self.assertEqual(send_payment_reminders(today)['sent'], 0)
        self.assertEqual(Notification.objects.filter(
            type=Notification.TYPE_PAYMENT_REMINDER).count(), 2)

    def test_reminder_command(self):
        out = io.StringIO()
        call_command('send_payment_reminders', '--date', '2026-01-10', stdout=out)
        self.assertIn('Not within reminder window', out.getvalue())

        with self.assertRaises(CommandError):
            call_command('send_payment_reminders', '--date', 'yesterday', stdout=out)

    def test_notification_endpoints(self):
        n1 = create_notification(self.admin1, 'Birinchi', 'Xabar 1')
        create_notification(self.admin1, 'Ikkinchi', 'Xabar 2')
        other = create_notification(self.admin2, 'Boshqa', 'Xabar 3')

        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/notifications/')
        self.assertEqual(len(resp.data['results']), 2)

        resp = self.client.get('/api/notifications/unread-count/')
        self.assertEqual(resp.data['count'], 2)

        resp = self.client.post(f'/api/notifications/{n1.id}/read/')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data['is_read'])

        resp = self.client.post('/api/notifications/read-all/')
        self.assertEqual(resp.data['updated'], 1)

        resp = self.client.post(f'/api/notifications/{other.id}/read/')
        self.assertEqual(resp.status_code, 404)


# ═══════════════════════════════════════════════════════════
#  EXCEL EXPORT
# ═══════════════════════════════════════════════════════════

class ExportTests(BaseTestCase):

    def test_filename_is_date_stamped(self):
        self.assertEqual(export_filename('omborlar', date(2026, 1, 5)), 'omborlar_2026-01-05.xlsx')

    def test_workbook_headers_and_widths(self):
        rows = [{'name': 'Bekzod', 'rent': 1500000}, {'name': 'Ali', 'rent': None}]
        wb = build_workbook(rows, [('name', 'Ijarachi ismi'), ('rent', 'Oylik ijara')])
        ws = wb.active
        self.assertEqual(ws.title, 'Sheet1')
        self.assertEqual([c.value for c in ws[1]], ['Ijarachi ismi', 'Oylik ijara'])
        self.assertEqual(ws['B2'].value, 1500000)
        self.assertEqual(ws.column_dimensions['A'].width, 15)
        self.assertEqual(ws.column_dimensions['B'].width, 13)

    def test_owner_tenant_export_has_admin_column(self):
        self.login_as('owner@ombor.uz', 'Owner123')
        resp = self.client.get('/api/tenants/export/')
        self.assertEqual(resp.status_code, 200)
        self.assertIn('ijarachilar_', resp['Content-Disposition'])

        ws = load_workbook(io.BytesIO(resp.content)).active
        self.assertEqual(ws.title, 'Ijarachilar')
        self.assertEqual([c.value for c in ws[1]], [
            'Ijarachi ismi', 'Telefon', 'Mahsulot turi', 'Ombor', 'Oylik ijara', 'Admin', 'Holat',
        ])
        self.assertEqual(ws.max_row, 4)

    def test_admin_tenant_export(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/tenants/export/')
        ws = load_workbook(io.BytesIO(resp.content)).active
        self.assertNotIn('Admin', [c.value for c in ws[1]])
        self.assertEqual(ws.max_row, 3)

    def test_export_with_no_rows(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/warehouses/export/', {'search': 'topilmaydi'})
        self.assertEqual(resp.status_code, 400)

    def test_warehouse_export(self):
        self.login_as('aziz@ombor.uz', 'Admin123')
        resp = self.client.get('/api/warehouses/export/')
        self.assertEqual(resp.status_code, 200)
        ws = load_workbook(io.BytesIO(resp.content)).active
        self.assertEqual(ws['A2'].value, 'Chilonzor ombori')
        self.assertEqual(ws['C2'].value, '-')
        self.assertEqual(ws['D2'].value, 'Faol')
