"""
Ombor — Payment reminders
Meant to run daily from cron; it is a no-op outside the last days of the month.
Usage: python manage.py send_payment_reminders [--date YYYY-MM-DD]
"""
from datetime import date

from django.core.management.base import BaseCommand, CommandError

from core.notifications import send_payment_reminders


class Command(BaseCommand):
    help = 'Notify admins about tenants who have not paid this month'

    def add_arguments(self, parser):
        parser.add_argument('--date', help='Run as if today were this date (YYYY-MM-DD)')

    def handle(self, *args, **options):
        today = None
        if options.get('date'):
            try:
                today = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f'Invalid date: {options["date"]}')

        result = send_payment_reminders(today)

        if result['skipped']:
            self.stdout.write(
                f'· Not within reminder window ({result["days_until_month_end"]} days left)'
            )
            return

        self.stdout.write(self.style.SUCCESS(
            f'✓ Created {result["sent"]} payment reminders '
            f'({result["unpaid_tenants"]} tenants unpaid)'
        ))
