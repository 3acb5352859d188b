from dotenv import load_dotenv
load_dotenv()  # Load environment variables from .env

import os
import re
from urllib.parse import urljoin

import pytest
import requests


def _setup_django():
    # reverse() needs the project's URLconf
    os.environ.setdefault(
        "DJANGO_SETTINGS_MODULE",
        os.getenv("DJANGO_SETTINGS_MODULE", "ResaleHub.settings"),
    )

    import django
    django.setup()


_setup_django()

from django.urls import reverse


def build_url(base_url: str, viewname: str, args=None, kwargs=None, query: str | None = None) -> str:
    # Full URL from a route name and the live base URL
    path = reverse(viewname, args=args or (), kwargs=kwargs or {})
    url = urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))

    if query:
        url = url + ("&" if "?" in url else "?") + query.lstrip("?")

    return url


@pytest.fixture(scope="session")
def live_base_url() -> str:
    base = os.getenv("LIVE_BASE_URL", "").strip()
    if not base:
        pytest.skip("LIVE_BASE_URL is not set")
    return base


@pytest.fixture()
def http() -> requests.Session:
    # Cookies persist across requests (login -> authenticated calls)
    s = requests.Session()
    s.headers.update({"User-Agent": "resalehub-live-tests/1.0"})
    return s


def _login_form_inputs(html: str) -> dict:
    # Hidden inputs of the admin login form (csrf token, next)
    match = re.search(r'<form\b[^>]*id=["\']login-form["\'][^>]*>(.*?)</form>', html, re.IGNORECASE | re.DOTALL)
    if not match:
        match = re.search(r'<form\b[^>]*>(.*?)</form>', html, re.IGNORECASE | re.DOTALL)
    if not match:
        raise ValueError("No form found on page")

    inputs = {}
    for tag in re.findall(r'<input\b[^>]*>', match.group(1), re.IGNORECASE):
        name = re.search(r'name=["\']([^"\']+)["\']', tag, re.IGNORECASE)
        if not name:
            continue
        value = re.search(r'value=["\']([^"\']*)["\']', tag, re.IGNORECASE)
        inputs[name.group(1)] = value.group(1) if value else ""
    return inputs


@pytest.fixture()
def login(http: requests.Session, live_base_url: str):
    # Logs in through the admin login page and returns the session
    def _login(username: str, password: str) -> requests.Session:
        login_url = build_url(live_base_url, "admin:login")

        r_get = http.get(login_url, timeout=30, allow_redirects=True)
        r_get.raise_for_status()

        inputs = _login_form_inputs(r_get.text)
        csrf_token = inputs.get("csrfmiddlewaretoken") or http.cookies.get("csrftoken")

        headers = {
            "Referer": login_url,
            "Origin": live_base_url.rstrip("/"),
        }
        if csrf_token:
            headers["X-CSRFToken"] = csrf_token

        data = {
            **inputs,
            "csrfmiddlewaretoken": csrf_token,
            "username": username,
            "password": password,
        }

        r_post = http.post(login_url, data=data, headers=headers, timeout=30, allow_redirects=True)

        if not any(c.name == "sessionid" for c in http.cookies):
            raise AssertionError(
                "Login failed: sessionid cookie was not set.\n"
                f"Final URL: {r_post.url}\n"
                f"Cookies now: {[c.name for c in http.cookies]}\n"
                f"Response starts:\n{r_post.text[:800]}"
            )

        return http

    return _login


@pytest.fixture(scope="session")
def live_user_credentials():
    u = os.getenv("LIVE_TEST_USERNAME") or ""
    p = os.getenv("LIVE_TEST_PASSWORD") or ""
    if not (u and p):
        pytest.skip("Missing live test credentials")
    return u, p


@pytest.fixture(scope="session")
def live_admin_credentials():
    # Staff account used for the payout endpoints
    u = os.getenv("LIVE_ADMIN_USERNAME") or ""
    p = os.getenv("LIVE_ADMIN_PASSWORD") or ""
    if not (u and p):
        pytest.skip("Missing live admin credentials")
    return u, p
