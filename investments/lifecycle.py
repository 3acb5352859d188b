"""
Investment lifecycle.

    pending --confirm--> active --(maturity date reached)--> matured --payout--> paid_out
    pending/active --cancel--> cancelled

Maturity is derived, not scheduled: an `active` row whose maturity date is
today or earlier is treated as `matured` everywhere, whether or not the
stored status has been updated yet.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from django.db import transaction
from django.utils import timezone

from orders.models import Order
from orders.resale import OrderResaleView, ResaleSummary, aggregate_order_resale, resale_view_for

from .exceptions import AlreadyPaidOut, InvalidTransition, NotYetMatured
from .models import Investment
from .repository import InvestmentRepository

logger = logging.getLogger(__name__)

Status = Investment.Status


def is_due(investment: Investment, as_of: date) -> bool:
    return investment.status == Status.ACTIVE and investment.maturity_date <= as_of


def effective_status(investment: Investment, as_of: date) -> str:
    if is_due(investment, as_of):
        return Status.MATURED
    return investment.status


class InvestmentLifecycleManager:
    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = timezone.now,
        repository: Optional[InvestmentRepository] = None,
    ):
        self.clock = clock
        self.repository = repository or InvestmentRepository()

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return timezone.localdate(self.now())

    # --- Pure classification ---

    @staticmethod
    def is_due(investment: Investment, as_of: date) -> bool:
        return is_due(investment, as_of)

    def effective_status(self, investment: Investment, as_of: Optional[date] = None) -> str:
        return effective_status(investment, as_of or self.today())

    def days_until_maturity(self, investment: Investment) -> int:
        return max(0, (investment.maturity_date - self.today()).days)

    # --- Queries (read-only) ---

    def should_mature(self):
        return self.repository.due(self.today()).order_by("maturity_date", "id")

    def pending_payout(self):
        return self.repository.pending_payout(self.today())

    # --- Transitions ---

    def activate(self, investment: Investment | int) -> Investment:
        """Order confirmed: pending -> active."""
        pk = _pk(investment)
        with transaction.atomic():
            current = self.repository.get(pk, for_update=True)
            if current.status != Status.PENDING:
                self._reject(InvalidTransition(pk, current.status, Status.ACTIVE))

            self._apply(pk, expected=(Status.PENDING,), target=Status.ACTIVE)

        logger.info("Investment %s activated", pk)
        return self._refreshed(investment, pk)

    def mark_paid_out(self, investment: Investment | int, admin_id, timestamp: Optional[datetime] = None) -> Investment:
        """
        matured (stored or derived) -> paid_out.

        Runs under a row lock and a conditional update, so of two concurrent
        payouts for the same investment only one can succeed; the other gets
        AlreadyPaidOut. Writes one PayoutAudit row.

        Eligibility is judged on the manager's clock; `timestamp` is only
        the value recorded as `paid_out_at`.
        """
        pk = _pk(investment)
        paid_at = timestamp or self.now()
        as_of = self.today()

        with transaction.atomic():
            current = self.repository.get(pk, for_update=True)
            self._check_payout(current, as_of)

            self._apply(
                pk,
                expected=(current.status,),
                target=Status.PAID_OUT,
                on_conflict=lambda fresh: self._check_payout(fresh, as_of),
                paid_out_at=paid_at,
                paid_by_id=admin_id,
            )

            paid = self.repository.get(pk)
            self.repository.record_payout(paid, admin_id=admin_id, paid_out_at=paid_at)

        logger.info(
            "Investment %s paid out by admin %s: %s",
            pk,
            admin_id,
            paid.expected_return,
        )
        return self._refreshed(investment, pk)

    def cancel(self, investment: Investment | int, reason: str, timestamp: Optional[datetime] = None) -> Investment:
        """
        pending/active -> cancelled. Matured (including due active) and
        paid out investments cannot be cancelled.
        """
        pk = _pk(investment)
        cancelled_at = timestamp or self.now()
        as_of = self.today()

        with transaction.atomic():
            current = self.repository.get(pk, for_update=True)
            self._check_cancel(current, as_of)

            self._apply(
                pk,
                expected=(current.status,),
                target=Status.CANCELLED,
                on_conflict=lambda fresh: self._check_cancel(fresh, as_of),
                cancellation_reason=reason,
                cancelled_at=cancelled_at,
            )

        logger.info("Investment %s cancelled: %s", pk, reason)
        return self._refreshed(investment, pk)

    def persist_maturity(self) -> int:
        """Write `matured` for every due active row. Returns the row count."""
        updated = self.repository.mark_matured(self.today())
        if updated:
            logger.info("Marked %s investment(s) as matured", updated)
        return updated

    # --- Aggregates ---

    def aggregate_order_resale(self, order: Order | OrderResaleView) -> ResaleSummary:
        view = order if isinstance(order, OrderResaleView) else resale_view_for(order)
        return aggregate_order_resale(view)

    def payout_summary(self) -> dict:
        today = self.today()
        repo = self.repository

        pending = repo.pending_payout(today)
        paid = repo.paid_out()
        active = repo.active_not_due(today)

        pending_totals = repo.totals(pending, "expected_return", "profit_amount")
        paid_totals = repo.totals(paid, "expected_return")
        active_totals = repo.totals(active, "invested_amount")

        return {
            "pending_count": pending.count(),
            "pending_total_return": pending_totals["expected_return"],
            "pending_total_profit": pending_totals["profit_amount"],
            "paid_count": paid.count(),
            "paid_total_return": paid_totals["expected_return"],
            "active_count": active.count(),
            "active_total_invested": active_totals["invested_amount"],
        }

    def user_summary(self, user) -> dict:
        today = self.today()
        repo = self.repository
        mine = repo.objects.filter(user=user).exclude(status=Status.CANCELLED)

        active = repo.active_not_due(today).filter(user=user)
        matured = repo.pending_payout(today).filter(user=user)
        paid = repo.paid_out().filter(user=user)
        invested = mine.exclude(status=Status.PENDING)

        total_invested = repo.totals(invested, "invested_amount")["invested_amount"]
        expected = repo.totals(active, "expected_return")["expected_return"]
        pending_payout = repo.totals(matured, "expected_return")["expected_return"]
        total_paid = repo.totals(paid, "expected_return")["expected_return"]
        total_profit = repo.totals(invested, "profit_amount")["profit_amount"]

        return {
            "active_count": active.count(),
            "matured_count": matured.count(),
            "paid_out_count": paid.count(),
            "total_invested": total_invested,
            "total_expected_return": expected + pending_payout,
            "total_paid_out": total_paid,
            "pending_payout": pending_payout,
            "total_profit": total_profit,
        }

    # --- Internals ---

    def _check_payout(self, investment: Investment, as_of: date) -> None:
        status = investment.status
        if status == Status.PAID_OUT or investment.paid_out_at is not None:
            self._reject(AlreadyPaidOut(investment.pk, status))
        if status == Status.ACTIVE and not is_due(investment, as_of):
            self._reject(NotYetMatured(investment.pk, status, Status.PAID_OUT, investment.maturity_date))
        if effective_status(investment, as_of) != Status.MATURED:
            self._reject(InvalidTransition(investment.pk, status, Status.PAID_OUT))

    def _check_cancel(self, investment: Investment, as_of: date) -> None:
        current = effective_status(investment, as_of)
        if current not in (Status.PENDING, Status.ACTIVE):
            self._reject(InvalidTransition(investment.pk, current, Status.CANCELLED))

    def _apply(self, pk, *, expected: Iterable[str], target: str, on_conflict=None, **fields) -> None:
        updated = self.repository.transition(pk, expected=tuple(expected), target=target, **fields)
        if updated:
            return

        # Lost a race: explain with the state that won
        fresh = self.repository.get(pk)
        if on_conflict is not None:
            on_conflict(fresh)
        self._reject(InvalidTransition(pk, fresh.status, target))

    @staticmethod
    def _reject(error) -> None:
        logger.warning("Rejected transition: %s", error)
        raise error

    def _refreshed(self, investment, pk) -> Investment:
        if isinstance(investment, Investment):
            investment.refresh_from_db()
            return investment
        return self.repository.get(pk)


def _pk(investment: Investment | int):
    return investment.pk if isinstance(investment, Investment) else investment


def get_lifecycle_manager() -> InvestmentLifecycleManager:
    return InvestmentLifecycleManager()
