"""
Persist maturity for active investments whose maturity date has passed.

Usage:
    python manage.py mature_investments            # Mark due investments as matured
    python manage.py mature_investments --dry-run  # List them without writing
"""

from django.core.management.base import BaseCommand

from investments.lifecycle import get_lifecycle_manager


class Command(BaseCommand):
    help = 'Mark active investments past their maturity date as matured'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be marked without actually doing it'
        )

    def handle(self, *args, **options):
        manager = get_lifecycle_manager()
        due = list(manager.should_mature())

        if not due:
            self.stdout.write(self.style.WARNING('No investments are due'))
            return

        self.stdout.write(f'Found {len(due)} due investment(s):')
        for investment in due:
            self.stdout.write(
                f'  - #{investment.pk} user {investment.user_id} '
                f'matured {investment.maturity_date:%Y-%m-%d} ({investment.expected_return})'
            )

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('DRY RUN - No investments were updated'))
            return

        updated = manager.persist_maturity()
        self.stdout.write(self.style.SUCCESS(f'Marked {updated} investment(s) as matured'))
