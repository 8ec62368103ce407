"""Application wiring tests."""


def test_health_check(client):
    """The health endpoint returns ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_routers_mounted(client):
    paths = set(client.app.openapi()["paths"])
    assert {
        "/api/account-holders",
        "/api/transactions",
        "/api/transactions/{transaction_id}",
        "/api/transactions/sales/{buy_id}",
        "/api/transactions/sales/batch",
        "/api/splits",
        "/api/reporting/realized-pl",
        "/api/reporting/realized-pl/by-period",
        "/api/reporting/positions",
        "/api/reporting/positions/{as_of}",
        "/api/reporting/daily-performance/{as_of}",
    } <= paths
