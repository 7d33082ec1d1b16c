# Storefront Live API Suite - Shared Configuration and Fixtures
#
# This module provides:
# - A Flask server on an ephemeral SQLite file (one per test run)
# - Seeded accounts (admin, customer) and a supplier
# - An httpx client wrapper with auth helpers
# - Failure message formatting

import os
import sys
import time
import uuid
import tempfile
import subprocess
import shutil
from pathlib import Path
from typing import Generator, Optional, Dict, Any
from dataclasses import dataclass

import pytest
import httpx

# Add backend to path for imports
REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))


SEED_PASSWORD = "TestPass123!"
SEED_SIGNING_SECRET = "live-suite-signing-secret-0123456789abcdef"
SEED_SUPPLIER_EMAIL = "orders@acme.test"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "http://127.0.0.1:5001")

    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    server_startup_timeout: float = float(os.environ.get("TEST_SERVER_STARTUP_TIMEOUT", "30"))

    # Concurrency (for stress tests)
    stress_users: int = int(os.environ.get("TEST_STRESS_USERS", "10"))
    stress_duration: int = int(os.environ.get("TEST_STRESS_DURATION", "60"))


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Exception with a readable failure report.

    Structure:
    1. Scenario: What was being tested
    2. Expected: What should have happened
    3. Actual: What actually happened
    4. Likely Cause: Most probable reason for failure
    5. Code Location: Where to look in the codebase
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            "TEST FAILURE DETAILS",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            "-" * 80,
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            "-" * 80,
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]

        if self.response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {self.response.status_code}",
                f"RESPONSE BODY: {self.response.text[:1000]}",
            ])

        if self.extra_context:
            lines.append("-" * 80)
            lines.append("EXTRA CONTEXT:")
            for key, value in self.extra_context.items():
                lines.append(f"  {key}: {value}")

        lines.append("=" * 80)
        return "\n".join(lines)


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_body_contains: Optional[str] = None
):
    """Assert HTTP status (and optionally body content), raising TestFailure with a report."""
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    if expected_body_contains and expected_body_contains not in response.text:
        raise TestFailure(
            scenario=scenario,
            expected=f"Response body contains: {expected_body_contains}",
            actual=f"Response body: {response.text[:500]}",
            likely_cause="Response format changed or wrong endpoint hit",
            code_location=code_location,
            response=response
        )


def _infer_cause(response: httpx.Response) -> str:
    """Infer likely cause from the tagged error body, falling back to the status."""
    try:
        kind = response.json().get("kind")
    except ValueError:
        kind = None

    causes = {
        "validation": "Invalid request - a field failed validation (see 'field')",
        "conflict": "Conflict - username/email/supplier already exists or token already decided",
        "authentication": "Authentication failed - bad credentials or missing/revoked session token",
        "forbidden": "Permission denied - role is not allowed on this endpoint",
        "locked": "Account locked after repeated failed logins",
        "rate_limited": "Rate limited - too many supplier tokens in the last hour",
        "token": "Supplier token invalid or expired (see 'reason')",
        "delivery": "Email delivery failed - check MAIL_BACKEND settings",
    }
    if kind in causes:
        return causes[kind]
    if response.status_code >= 500:
        return "Server error - check backend logs for stack trace"
    return f"Unexpected status code {response.status_code}"


def unique_name(prefix: str) -> str:
    """Username-safe unique value so tests can share one live database."""
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


# =============================================================================
# HTTP CLIENT WITH AUTH HELPERS
# =============================================================================

class APIClient:
    """HTTP client wrapper that remembers the session token."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout)
        self.token: Optional[str] = None
        self.current_user: Optional[Dict] = None

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(f"{self.base_url}{path}", headers=self._headers(), params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(f"{self.base_url}{path}", headers=self._headers(), json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> httpx.Response:
        return self.client.delete(f"{self.base_url}{path}", headers=self._headers(), **kwargs)

    def register(self, **fields) -> httpx.Response:
        payload = {
            "username": unique_name("user"),
            "firstname": "Test",
            "lastname": "Customer",
            "password": SEED_PASSWORD,
        }
        payload.update(fields)
        payload.setdefault("email", f"{payload['username']}@example.test")
        response = self.post("/api/auth/register", json=payload)
        if response.status_code == 201:
            self.token = response.json().get("token")
            self.current_user = response.json().get("user")
        return response

    def login(self, username: str, password: str) -> bool:
        response = self.post("/api/auth/login", json={"username": username, "password": password})
        if response.status_code == 200:
            data = response.json()
            self.token = data.get("token")
            self.current_user = data.get("user")
            return True
        return False

    def logout(self) -> bool:
        if not self.token:
            return True
        response = self.post("/api/auth/logout")
        if response.status_code == 200:
            self.token = None
            self.current_user = None
            return True
        return False

    def check_auth(self) -> bool:
        if not self.token:
            return False
        return self.post("/api/auth/check-auth").status_code == 200

    def close(self):
        self.client.close()


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

class ServerManager:
    """Manages the Flask backend lifecycle for a test run."""

    def __init__(self, config: TestConfig):
        self.config = config
        self.process: Optional[subprocess.Popen] = None
        self.db_file: Optional[Path] = None

    def _env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["FLASK_APP"] = "wsgi.py"
        env["DATABASE_URL"] = f"sqlite:///{self.db_file}"
        env["TOKEN_SIGNING_SECRET"] = SEED_SIGNING_SECRET
        env["MAIL_BACKEND"] = "memory"
        env["BCRYPT_ROUNDS"] = "4"
        return env

    def start(self) -> bool:
        """Create the schema, seed it, then start the Flask server."""
        temp_dir = tempfile.mkdtemp(prefix="storefront_test_")
        self.db_file = Path(temp_dir) / "test_storefront.sqlite3"

        env = self._env()
        subprocess.run(
            [sys.executable, "-m", "flask", "system", "init-db"],
            cwd=str(BACKEND_DIR), env=env, check=True, capture_output=True,
        )
        self.seed()

        port = self.config.backend_base_url.rsplit(":", 1)[-1].split("/")[0]
        self.process = subprocess.Popen(
            [sys.executable, "-m", "flask", "run", "--port", port],
            cwd=str(BACKEND_DIR),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return self._wait_for_server()

    def seed(self):
        """Seed accounts and a supplier directly through the services."""
        from storefront import create_app
        from storefront.extensions import db
        from storefront.services import get_services
        from storefront.services.password_service import PasswordHasher

        app = create_app({
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{self.db_file}",
            "TOKEN_SIGNING_SECRET": SEED_SIGNING_SECRET,
            "MAIL_BACKEND": "memory",
            "BCRYPT_ROUNDS": 4,
        })

        with app.app_context():
            services = get_services()
            for username, email, role in (
                ("admin_store", "admin@store.test", "admin"),
                ("staff_store", "staff@store.test", "staff"),
                ("customer_one", "customer@store.test", "user"),
            ):
                digest = services.hasher.hash(SEED_PASSWORD)
                services.store.create(
                    username=username,
                    email=email,
                    password_hash=digest,
                    password_cost=PasswordHasher.cost_of(digest),
                    role=role,
                    firstname="Seed",
                    lastname="Account",
                )
            services.suppliers.create_supplier("Acme Textiles", SEED_SUPPLIER_EMAIL)
            db.session.remove()

    def _wait_for_server(self) -> bool:
        start_time = time.time()
        while time.time() - start_time < self.config.server_startup_timeout:
            try:
                response = httpx.get(f"{self.config.backend_base_url}/health", timeout=2.0)
                if response.status_code in (200, 503):  # 503 means degraded but running
                    return True
            except (httpx.ConnectError, httpx.TimeoutException):
                pass
            time.sleep(0.5)
        return False

    def stop(self):
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None

        if self.db_file and self.db_file.parent.exists():
            shutil.rmtree(self.db_file.parent, ignore_errors=True)


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    return TestConfig()


@pytest.fixture(scope="session")
def server_manager(test_config: TestConfig) -> Generator[ServerManager, None, None]:
    """
    Manage test server lifecycle.
    Server is started once per test session.
    """
    manager = ServerManager(test_config)

    # For CI/external server mode, don't manage server
    if os.environ.get("TEST_EXTERNAL_SERVER"):
        yield manager
    else:
        if not manager.start():
            pytest.fail("Failed to start test server")
        yield manager
        manager.stop()


@pytest.fixture(scope="session")
def api_client(test_config: TestConfig, server_manager: ServerManager) -> Generator[APIClient, None, None]:
    client = APIClient(test_config.backend_base_url, timeout=test_config.request_timeout)
    yield client
    client.close()


@pytest.fixture
def client(api_client: APIClient) -> APIClient:
    """API client for one test, with auth state cleared."""
    api_client.token = None
    api_client.current_user = None
    api_client.client.cookies.clear()
    return api_client


@pytest.fixture
def fresh_client(test_config: TestConfig, server_manager: ServerManager) -> Generator[APIClient, None, None]:
    """A second, independent client (its own cookies and token)."""
    other = APIClient(test_config.backend_base_url, timeout=test_config.request_timeout)
    yield other
    other.close()


@pytest.fixture
def admin_client(client: APIClient) -> APIClient:
    if not client.login("admin_store", SEED_PASSWORD):
        pytest.fail("Failed to login as admin_store")
    return client


@pytest.fixture
def customer_client(client: APIClient) -> APIClient:
    if not client.login("customer_one", SEED_PASSWORD):
        pytest.fail("Failed to login as customer_one")
    return client


# =============================================================================
# TEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "full: Full regression tests")
    config.addinivalue_line("markers", "auth: Registration, login, logout and lockout tests")
    config.addinivalue_line("markers", "rbac: Role-based access control tests")
    config.addinivalue_line("markers", "loyalty: Referral and loyalty tests")
    config.addinivalue_line("markers", "suppliers: Supplier stock-order token tests")
