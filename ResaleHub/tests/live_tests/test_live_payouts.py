import pytest

from .conftest import build_url


@pytest.mark.live
def test_investor_sees_own_investments(http, live_base_url, login, live_user_credentials):
    username, password = live_user_credentials
    login(username, password)

    r = http.get(build_url(live_base_url, "investments:user_investments"), timeout=30)

    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert "summary" in data
    for row in data["investments"]:
        assert row["status"] != "cancelled"
        assert row["effective_status"] in ("pending", "active", "matured", "paid_out")


@pytest.mark.live
def test_investor_cannot_open_payout_queue(http, live_base_url, login, live_user_credentials):
    username, password = live_user_credentials
    login(username, password)

    r = http.get(build_url(live_base_url, "investments:pending_payouts"), timeout=30)

    assert r.status_code == 403


@pytest.mark.live
def test_admin_payout_queue_only_holds_matured(http, live_base_url, login, live_admin_credentials):
    username, password = live_admin_credentials
    login(username, password)

    r = http.get(build_url(live_base_url, "investments:pending_payouts"), timeout=30)

    assert r.status_code == 200
    data = r.json()
    for row in data["payouts"]:
        assert row["effective_status"] == "matured"
        assert row["paid_out_at"] is None
        assert row["days_since_matured"] >= 0
    assert data["summary"]["total_pending"] == data["pagination"]["total"]


@pytest.mark.live
def test_mark_paid_get_not_allowed(http, live_base_url, login, live_admin_credentials):
    username, password = live_admin_credentials
    login(username, password)

    url = build_url(live_base_url, "investments:mark_paid", args=[1])
    r = http.get(url, timeout=30)

    assert r.status_code == 405
