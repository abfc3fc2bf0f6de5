"""API endpoint tests.

Tests the FastAPI endpoints for the payroll run workflow against an
in-memory data source.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import AS_OF, PAY_PERIOD, TENANT_ID, make_employee, make_profile
from ca_payroll.api.app import create_app
from ca_payroll.api.dependencies import RunRegistry
from ca_payroll.domain.employee import EmployeeEarning
from ca_payroll.services.bank_export import BANK_FILE_HEADER
from ca_payroll.services.pay_run_service import PayRunService

pytestmark = pytest.mark.asyncio

HEADERS = {"X-Tenant-ID": TENANT_ID}
RUN_BODY = {
    "employee_ids": [1, 2],
    "pay_period": PAY_PERIOD,
    "as_of_date": AS_OF.isoformat(),
}


@pytest_asyncio.fixture
async def client(data_source, app_config):
    app = create_app(data_source=data_source, config=app_config)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def start_run(client: AsyncClient) -> dict:
    response = await client.post("/api/v1/payroll-runs", headers=HEADERS, json=RUN_BODY)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["version"]

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json()["status"] == "ready"
        assert (await client.get("/live")).json()["status"] == "alive"


class TestEmployees:
    async def test_list_employees(self, client: AsyncClient):
        response = await client.get("/api/v1/employees", headers=HEADERS)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [e["name"] for e in data["items"]] == ["Alice Tremblay", "Bob Singh"]
        assert data["items"][1]["province"] == "British Columbia"

    async def test_requires_tenant_id(self, client: AsyncClient):
        """Requests without X-Tenant-ID should fail."""
        response = await client.get("/api/v1/employees")
        assert response.status_code == 400


class TestPayrollRuns:
    async def test_start_run(self, client: AsyncClient):
        """POST /api/v1/payroll-runs calculates a preview."""
        data = await start_run(client)

        assert data["step"] == "preview"
        assert data["progress"] == 100.0
        assert data["failures"] == {}
        alice = data["paystubs"][0]
        assert alice["employee_name"] == "Alice Tremblay"
        assert Decimal(alice["gross_pay"]) == Decimal("4375.00")
        assert Decimal(alice["net_pay"]) == Decimal("2967.69")
        assert [d["category"] for d in alice["deductions"]] == ["STATUTORY"] * 4

    async def test_get_run(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.get(f"/api/v1/payroll-runs/{run['run_id']}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["run_id"] == run["run_id"]

    async def test_unknown_run(self, client: AsyncClient):
        response = await client.get("/api/v1/payroll-runs/nope", headers=HEADERS)
        assert response.status_code == 404

    async def test_run_hidden_from_other_tenants(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.get(
            f"/api/v1/payroll-runs/{run['run_id']}", headers={"X-Tenant-ID": "other"}
        )
        assert response.status_code == 404

    async def test_empty_selection_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/payroll-runs",
            headers=HEADERS,
            json={"employee_ids": [], "pay_period": PAY_PERIOD},
        )
        assert response.status_code == 422

    async def test_unknown_employee_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/payroll-runs",
            headers=HEADERS,
            json={"employee_ids": [1, 42], "pay_period": PAY_PERIOD},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_all_failed(self, data_source, company_settings, app_config):
        broken = make_employee(
            3,
            profile=make_profile(name="Carol Broken"),
            recurring_earnings=(EmployeeEarning("ghost", Decimal("10")),),
        )
        data_source.add_tenant(TENANT_ID, company_settings, employees=[broken])
        app = create_app(data_source=data_source, config=app_config)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post(
                "/api/v1/payroll-runs",
                headers=HEADERS,
                json={"employee_ids": [3], "pay_period": PAY_PERIOD},
            )

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "PAYROLL_RUN_FAILED"
        assert list(data["failures"]) == ["3"]


class TestAdjustments:
    async def test_bonus_adjustment(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/adjustments",
            headers=HEADERS,
            json={"employee_id": 1, "kind": "bonus", "amount": "500.00"},
        )
        assert response.status_code == 200, response.text
        assert Decimal(response.json()["gross_pay"]) == Decimal("4875.00")

    async def test_vacation_payout_over_balance(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/adjustments",
            headers=HEADERS,
            json={"employee_id": 2, "kind": "vacation", "amount": "300.01"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_negative_amount_rejected_by_schema(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/adjustments",
            headers=HEADERS,
            json={"employee_id": 1, "kind": "bonus", "amount": "-5"},
        )
        assert response.status_code == 422

    async def test_overtime_adjustment(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/adjustments",
            headers=HEADERS,
            json={"employee_id": 1, "kind": "overtime", "hours": "2"},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert Decimal(data["gross_pay"]) == Decimal("4526.44")
        overtime = data["earnings"][-1]
        assert overtime["type"] == "Overtime"
        assert Decimal(overtime["rate"]) == Decimal("75.72")
        assert Decimal(overtime["hours"]) == Decimal("2")

    async def test_zero_overtime_hours_rejected_by_schema(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/adjustments",
            headers=HEADERS,
            json={"employee_id": 1, "kind": "overtime", "hours": "0"},
        )
        assert response.status_code == 422


class TestCommitFlow:
    async def test_commit_requires_confirm(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/commit", headers=HEADERS, json={}
        )
        assert response.status_code == 422

    async def test_commit_and_new_run(self, client: AsyncClient, data_source):
        run = await start_run(client)
        url = f"/api/v1/payroll-runs/{run['run_id']}"

        response = await client.post(f"{url}/commit", headers=HEADERS, json={"confirm": True})
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["step"] == "committed"
        assert data["paystub_count"] == 2
        assert data["already_committed"] is False

        alice = await data_source.get_employee(TENANT_ID, 1)
        assert alice.ytd.gross_pay == Decimal("4375.00")

        # Committed runs cannot be committed again
        response = await client.post(f"{url}/commit", headers=HEADERS, json={"confirm": True})
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

        response = await client.post(f"{url}/new-run", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["step"] == "select"
        assert response.json()["paystubs"] == []

        response = await client.post(
            f"{url}/calculate",
            headers=HEADERS,
            json={**RUN_BODY, "employee_ids": [1]},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["run_id"] == run["run_id"]
        assert data["step"] == "preview"
        assert [p["employee_id"] for p in data["paystubs"]] == [1]

        variance = await client.get(f"{url}/variance", headers=HEADERS)
        assert Decimal(variance.json()["previous_total_cost"]) > 0

    async def test_failed_commit_is_retryable(self, client: AsyncClient, data_source):
        run = await start_run(client)
        url = f"/api/v1/payroll-runs/{run['run_id']}"
        data_source.fail_next_commit = True

        response = await client.post(f"{url}/commit", headers=HEADERS, json={"confirm": True})
        assert response.status_code == 502
        assert response.json()["code"] == "COMMIT_FAILED"
        assert (await client.get(url, headers=HEADERS)).json()["step"] == "preview"

        response = await client.post(f"{url}/commit", headers=HEADERS, json={"confirm": True})
        assert response.status_code == 200

    async def test_discard(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/discard", headers=HEADERS
        )
        assert response.status_code == 200
        assert response.json()["step"] == "select"

        # Discarded runs are released
        response = await client.get(f"/api/v1/payroll-runs/{run['run_id']}", headers=HEADERS)
        assert response.status_code == 404

    async def test_new_run_from_preview_is_invalid(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/new-run", headers=HEADERS
        )
        assert response.status_code == 409

    async def test_calculate_requires_select_step(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.post(
            f"/api/v1/payroll-runs/{run['run_id']}/calculate", headers=HEADERS, json=RUN_BODY
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"


class TestReports:
    async def test_variance_without_history(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.get(
            f"/api/v1/payroll-runs/{run['run_id']}/variance",
            headers=HEADERS,
            params={"explain": "true"},
        )
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["previous_total_cost"]) == Decimal("0")
        assert data["explanation"] == "No previous payroll run to compare against."

    async def test_bank_file(self, client: AsyncClient):
        run = await start_run(client)
        response = await client.get(
            f"/api/v1/payroll-runs/{run['run_id']}/bank-file",
            headers=HEADERS,
            params={"payment_date": "2024-07-31"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        rows = response.text.split("\n")
        assert rows[0] == BANK_FILE_HEADER
        assert rows[1] == "C,NorthstarHCMInc,001,20240731,004-12345-9876543,Alice_Tremblay,296769"


class TestRunRegistry:
    async def test_evicts_oldest_past_capacity(self, data_source, app_config):
        registry = RunRegistry(capacity=2)
        services = [PayRunService(data_source, TENANT_ID, config=app_config) for _ in range(3)]
        for index, service in enumerate(services):
            registry.add(f"run-{index}", TENANT_ID, service)

        assert len(registry) == 2
        assert registry.get("run-0", TENANT_ID) is None
        assert registry.get("run-2", TENANT_ID) is services[2]

    async def test_remove(self, data_source, app_config):
        registry = RunRegistry()
        registry.add("run-1", TENANT_ID, PayRunService(data_source, TENANT_ID, config=app_config))
        registry.remove("run-1")
        registry.remove("run-1")
        assert len(registry) == 0
