"""
Ombor — Seed Demo Data
Creates an owner, two admins with warehouses and tenants, and a few
months of payments so the dashboard has something to show.
Usage: python manage.py seed_data
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from core import ledger
from core.models import AdminStatus, Tenant, User, UserRole, Warehouse


class Command(BaseCommand):
    help = 'Seed database with Ombor demo data'

    def handle(self, *args, **options):
        self.stdout.write('🌱 Seeding Ombor demo data...\n')

        # ── Owner ────────────────────────────────
        owner, created = User.objects.get_or_create(
            email='owner@ombor.uz',
            defaults={'full_name': 'Ombor Egasi', 'is_staff': True, 'is_superuser': True},
        )
        if created:
            owner.set_password('Owner123')
            owner.save()
            UserRole.objects.create(user=owner, role=UserRole.OWNER)
            self.stdout.write(self.style.SUCCESS('  ✓ Owner created'))
        else:
            self.stdout.write('  · Owner already exists')

        # ── Admins ───────────────────────────────
        admins_data = [
            ('Aziz Karimov', 'aziz@ombor.uz', 'Admin123', '+998901234567'),
            ('Dilnoza Yusupova', 'dilnoza@ombor.uz', 'Admin456', '+998937654321'),
        ]
        admins = []
        for name, email, pwd, phone in admins_data:
            admin, created = User.objects.get_or_create(
                email=email, defaults={'full_name': name, 'phone': phone},
            )
            if created:
                admin.set_password(pwd)
                admin.save()
                UserRole.objects.create(user=admin, role=UserRole.ADMIN)
                AdminStatus.objects.create(admin=admin)
                self.stdout.write(f'  ✓ Admin {email} created')
            admins.append(admin)

        # ── Warehouses & Tenants ─────────────────
        layout = {
            'aziz@ombor.uz': [
                ('Chilonzor ombori', 'Toshkent, Chilonzor 12', [
                    ('Bekzod Rahimov', '+998901112233', 'Oziq-ovqat', '1500000'),
                    ('Shahlo Nazarova', '+998902223344', 'Elektronika', '2000000'),
                ]),
                ('Sergeli ombori', 'Toshkent, Sergeli 5', [
                    ('Javlon Tursunov', '+998903334455', 'Qurilish materiallari', '1800000'),
                ]),
            ],
            'dilnoza@ombor.uz': [
                ('Yunusobod ombori', 'Toshkent, Yunusobod 19', [
                    ('Malika Ergasheva', '+998904445566', 'Kiyim-kechak', '1200000'),
                    ('Otabek Islomov', '+998905556677', 'Oziq-ovqat', '1600000'),
                ]),
            ],
        }

        tenants = []
        for admin in admins:
            for wh_name, address, tenants_data in layout.get(admin.email, []):
                warehouse, _ = Warehouse.objects.get_or_create(
                    admin=admin, name=wh_name, defaults={'address': address},
                )
                for full_name, phone, product, rent in tenants_data:
                    tenant, t_created = Tenant.objects.get_or_create(
                        admin=admin, full_name=full_name,
                        defaults={
                            'warehouse': warehouse,
                            'phone': phone,
                            'product_type': product,
                            'monthly_rent': Decimal(rent),
                        },
                    )
                    tenants.append(tenant)
                    if t_created:
                        self.stdout.write(f'  ✓ Tenant {full_name} created')

        # ── Payments: last three months ──────────
        today = timezone.localdate()
        month, year = today.month, today.year
        periods = []
        for _ in range(3):
            periods.insert(0, (month, year))
            month, year = ledger.previous_period(month, year)

        for i, tenant in enumerate(tenants):
            for j, (m, y) in enumerate(periods):
                # every other tenant underpays the middle month to show carry-over
                paid = tenant.monthly_rent
                if i % 2 and j == 1:
                    paid = tenant.monthly_rent / 2
                if j == len(periods) - 1 and i % 3 == 0:
                    paid = Decimal('0')
                ledger.record_payment(tenant, m, y, tenant.monthly_rent, paid)

        self.stdout.write(self.style.SUCCESS('  ✓ Payments created'))

        self.stdout.write(self.style.SUCCESS(
            '\n✅ Demo data seeded successfully!\n'
            '   Owner: owner@ombor.uz / Owner123\n'
            '   Admin: aziz@ombor.uz / Admin123\n'
            '   Admin: dilnoza@ombor.uz / Admin456'
        ))
