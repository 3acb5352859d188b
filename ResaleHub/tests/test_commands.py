from datetime import date
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase

from investments.lifecycle import InvestmentLifecycleManager
from investments.models import Investment

from .factories import fixed_clock, make_investment, make_user

Status = Investment.Status


class MatureInvestmentsCommandTests(TestCase):
    def setUp(self):
        investor = make_user()
        self.due = make_investment(investor, maturity_date=date(2026, 3, 10))
        self.not_due = make_investment(investor, maturity_date=date(2026, 4, 10))
        self.pending = make_investment(investor, status=Status.PENDING, maturity_date=date(2026, 3, 1))

        patcher = patch(
            "investments.management.commands.mature_investments.get_lifecycle_manager",
            return_value=InvestmentLifecycleManager(clock=fixed_clock()),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def run_command(self, *args):
        out = StringIO()
        call_command("mature_investments", *args, stdout=out)
        return out.getvalue()

    def test_dry_run_writes_nothing(self):
        output = self.run_command("--dry-run")

        self.assertIn(f"#{self.due.pk}", output)
        self.assertIn("DRY RUN", output)
        self.due.refresh_from_db()
        self.assertEqual(self.due.status, Status.ACTIVE)

    def test_marks_due_investments_as_matured(self):
        output = self.run_command()

        self.assertIn("Marked 1 investment(s) as matured", output)
        self.due.refresh_from_db()
        self.not_due.refresh_from_db()
        self.pending.refresh_from_db()
        self.assertEqual(self.due.status, Status.MATURED)
        self.assertEqual(self.not_due.status, Status.ACTIVE)
        self.assertEqual(self.pending.status, Status.PENDING)

    def test_second_run_finds_nothing(self):
        self.run_command()
        output = self.run_command()
        self.assertIn("No investments are due", output)
