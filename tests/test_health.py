"""Tests for the health endpoints."""

from community import health
from community.health import ComponentHealth, check_database_health, check_storage_config


class BrokenSession:
    async def execute(self, statement):
        raise ConnectionError("database is down")


def healthy_system():
    return ComponentHealth(name="system", status="healthy", response_time_ms=0.0, message="System is healthy")


class TestHealth:
    """Tests for GET /health."""

    def test_health_check(self, client):
        """The simple check reports a connected database."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["message"] == "All systems operational"

    def test_detailed(self, client, monkeypatch):
        """Unconfigured storage is degraded without failing the service."""
        monkeypatch.setattr(health, "check_system_health", healthy_system)
        data = client.get("/health/detailed").json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["storage"]["status"] == "degraded"
        assert "hit_rate" in data["checks"]["cache"]["details"]
        assert data["uptime_seconds"] >= 0


class TestComponentChecks:
    """Tests for the individual component checks."""

    async def test_database_failure(self):
        """Database errors are reported as unhealthy."""
        result = await check_database_health(BrokenSession())
        assert result.status == "unhealthy"
        assert "database is down" in result.message

    def test_storage_not_configured(self):
        """Missing storage credentials leave uploads disabled."""
        result = check_storage_config()
        assert result.status == "degraded"
        assert result.details == {"bucket": None}
