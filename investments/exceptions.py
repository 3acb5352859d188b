class InvestmentNotFound(Exception):
    code = "not_found"

    def __init__(self, investment_id):
        self.investment_id = investment_id
        super().__init__(f"Investment {investment_id} not found.")


class LifecycleError(Exception):
    """
    A rejected status transition. Carries the status the record was in and
    the status the caller asked for so the UI can explain the rejection.
    """

    code = "lifecycle_error"

    def __init__(self, investment_id, current_status: str, target_status: str, message: str | None = None):
        self.investment_id = investment_id
        self.current_status = current_status
        self.target_status = target_status
        if message is None:
            message = (
                f"Investment {investment_id} cannot move from "
                f"'{current_status}' to '{target_status}'."
            )
        super().__init__(message)

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "error": str(self),
            "investment_id": self.investment_id,
            "current_status": self.current_status,
            "target_status": self.target_status,
        }


class InvalidTransition(LifecycleError):
    code = "invalid_transition"


class AlreadyPaidOut(LifecycleError):
    code = "already_paid_out"

    def __init__(self, investment_id, current_status: str = "paid_out", target_status: str = "paid_out"):
        super().__init__(
            investment_id,
            current_status,
            target_status,
            f"Investment {investment_id} has already been paid out.",
        )


class NotYetMatured(LifecycleError):
    code = "not_yet_matured"

    def __init__(self, investment_id, current_status: str = "active", target_status: str = "paid_out", maturity_date=None):
        self.maturity_date = maturity_date
        message = f"Investment {investment_id} is not ready for payout."
        if maturity_date is not None:
            message = f"Investment {investment_id} matures on {maturity_date:%Y-%m-%d}."
        super().__init__(investment_id, current_status, target_status, message)
