from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from django.db.models import Q, QuerySet, Sum, Value, DecimalField
from django.db.models.functions import Coalesce

from .exceptions import InvestmentNotFound
from .models import Investment, PayoutAudit


ZERO = Value(Decimal("0"), output_field=DecimalField(max_digits=14, decimal_places=2))


def due_q(as_of: date) -> Q:
    # Stored as active but past (or on) the maturity date
    return Q(status=Investment.Status.ACTIVE, maturity_date__lte=as_of)


def pending_payout_q(as_of: date) -> Q:
    # Stored matured or due active; never paid, pending or cancelled
    return (Q(status=Investment.Status.MATURED) | due_q(as_of)) & Q(paid_out_at__isnull=True)


class InvestmentRepository:
    """
    Django ORM access for the lifecycle manager. Every state change goes
    through `transition`, a single conditional UPDATE.
    """

    def __init__(self, queryset: QuerySet | None = None):
        self._queryset = queryset

    @property
    def objects(self) -> QuerySet:
        if self._queryset is not None:
            return self._queryset.all()
        return Investment.objects.all()

    def get(self, investment_id, *, for_update: bool = False) -> Investment:
        qs = self.objects
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=investment_id)
        except (Investment.DoesNotExist, ValueError, TypeError):
            raise InvestmentNotFound(investment_id) from None

    def due(self, as_of: date) -> QuerySet:
        return self.objects.filter(due_q(as_of))

    def pending_payout(self, as_of: date) -> QuerySet:
        return self.objects.filter(pending_payout_q(as_of)).order_by("maturity_date", "id")

    def paid_out(self) -> QuerySet:
        return self.objects.filter(status=Investment.Status.PAID_OUT)

    def active_not_due(self, as_of: date) -> QuerySet:
        return self.objects.filter(status=Investment.Status.ACTIVE, maturity_date__gt=as_of)

    def transition(self, investment_id, *, expected: tuple[str, ...], target: str, **fields) -> int:
        """
        Compare-and-set: move the row to `target` only if its status is
        still one of `expected`. Returns the number of rows updated (0 or 1).
        """
        return (
            self.objects
            .filter(pk=investment_id, status__in=expected)
            .update(status=target, **fields)
        )

    def mark_matured(self, as_of: date) -> int:
        return self.due(as_of).update(status=Investment.Status.MATURED)

    def record_payout(self, investment: Investment, *, admin_id, paid_out_at: datetime) -> PayoutAudit:
        return PayoutAudit.objects.create(
            investment=investment,
            admin_id=admin_id,
            amount=investment.expected_return,
            profit_amount=investment.profit_amount,
            paid_out_at=paid_out_at,
        )

    @staticmethod
    def totals(qs: QuerySet, *fields: str) -> dict:
        # Unrounded Decimal sums, 0 when empty
        return qs.aggregate(**{name: Coalesce(Sum(name), ZERO) for name in fields})
