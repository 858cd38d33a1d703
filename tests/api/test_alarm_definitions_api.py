"""
告警定义 API 测试
"""
import pytest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from alarms import AlarmDefinitionService, AlarmState, ConflictError, LinkHydrator

BASE = "/v2.0/alarm-definitions"
HEADERS = {"X-Tenant-Id": "tenant-a"}
CREATE_BODY = {
    "name": "cpu high",
    "expression": "avg(cpu.user_perc{hostname=web-01}) > 90",
    "match_by": ["hostname"],
    "alarm_actions": ["a1"],
}


def _client_for(service):
    from api.dependencies import get_definition_service, get_link_hydrator
    from api.main import app

    app.dependency_overrides[get_definition_service] = lambda: service
    app.dependency_overrides[get_link_hydrator] = lambda: LinkHydrator("http://testserver", "/v2.0")
    return app, TestClient(app)


@pytest.fixture
def test_client(service):
    """测试客户端"""
    app, client = _client_for(service)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def created(test_client):
    response = test_client.post(BASE, json=CREATE_BODY, headers=HEADERS)
    assert response.status_code == 201
    return response.json()["data"]


class TestCreateAlarmDefinition:
    """POST /alarm-definitions 测试"""

    def test_create(self, test_client):
        """测试创建成功"""
        response = test_client.post(BASE, json=CREATE_BODY, headers=HEADERS)
        assert response.status_code == 201

        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["severity"] == "LOW"
        assert data["normalized_expression"] == "avg(cpu.user_perc{hostname=web-01}) > 90.0"
        assert data["expression_data"]["function"] == "AVG"
        assert data["version"] == 1
        assert data["links"] == [{"rel": "self", "href": f"http://testserver{BASE}/{data['id']}"}]
        assert response.headers["Location"] == data["links"][0]["href"]

    def test_missing_tenant(self, test_client):
        """测试缺少租户标识"""
        response = test_client.post(BASE, json=CREATE_BODY)
        assert response.status_code == 401
        assert response.json()["code"] == 40100

    def test_parse_error(self, test_client):
        """测试表达式语法错误"""
        body = dict(CREATE_BODY, expression="avg(cpu) > 1 and max(mem) < 2 or min(x) > 3")
        response = test_client.post(BASE, json=body, headers=HEADERS)
        assert response.status_code == 422

        error = response.json()["error"]
        assert response.json()["code"] == 42201
        assert error["type"] == "ParseError"
        assert error["field"] == "expression"
        assert error["position"] == body["expression"].index(" or ") + 1

    def test_validation_error(self, test_client):
        """测试字段校验失败"""
        body = dict(CREATE_BODY, severity="urgent", match_by=["bad key"])
        response = test_client.post(BASE, json=body, headers=HEADERS)
        assert response.status_code == 422

        error = response.json()["error"]
        assert error["type"] == "ValidationError"
        assert [e["field"] for e in error["errors"]] == ["severity", "match_by"]

    def test_missing_expression(self, test_client):
        body = {"name": "no expression"}
        response = test_client.post(BASE, json=body, headers=HEADERS)
        assert response.status_code == 422


class TestReadAlarmDefinitions:
    """GET 测试"""

    def test_get(self, test_client, created):
        response = test_client.get(f"{BASE}/{created['id']}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "cpu high"

    def test_get_other_tenant(self, test_client, created):
        """测试其他租户返回 404"""
        response = test_client.get(f"{BASE}/{created['id']}", headers={"X-Tenant-Id": "tenant-b"})
        assert response.status_code == 404
        assert response.json()["code"] == 40401

    def test_list(self, test_client, created):
        """测试列表与过滤"""
        response = test_client.get(BASE, params={"dimensions": "hostname:web-01"}, headers=HEADERS)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["elements"][0]["id"] == created["id"]

        response = test_client.get(BASE, params={"name": "other"}, headers=HEADERS)
        assert response.json()["data"]["total"] == 0

    def test_list_invalid_dimensions(self, test_client):
        response = test_client.get(BASE, params={"dimensions": "hostname"}, headers=HEADERS)
        assert response.status_code == 422
        assert response.json()["error"]["field"] == "dimensions"


class TestUpdateAlarmDefinition:
    """PUT / PATCH 测试"""

    def test_replace(self, test_client, created):
        body = {
            "name": "cpu critical",
            "severity": "critical",
            "expression": "max(cpu.user_perc) > 95 times 2",
            "actions_enabled": False,
        }
        response = test_client.put(f"{BASE}/{created['id']}", json=body, headers=HEADERS)
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["version"] == 2
        assert data["severity"] == "CRITICAL"
        assert data["normalized_expression"] == "max(cpu.user_perc) > 95.0 times 2"
        assert data["match_by"] == []

    def test_patch(self, test_client, created):
        """测试局部更新只修改提供的字段"""
        response = test_client.patch(
            f"{BASE}/{created['id']}", json={"description": "patched"}, headers=HEADERS
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["description"] == "patched"
        assert data["alarm_actions"] == ["a1"]
        assert data["version"] == 2

    def test_empty_patch(self, test_client, created):
        response = test_client.patch(f"{BASE}/{created['id']}", json={}, headers=HEADERS)
        assert response.status_code == 422
        assert response.json()["error"]["field"] == "patch"

    def test_patch_state_forwarded(self, test_client, created, state_updater):
        """测试 state 转发给状态协作者"""
        response = test_client.patch(
            f"{BASE}/{created['id']}", json={"state": "UNDETERMINED"}, headers=HEADERS
        )
        assert response.status_code == 200
        assert state_updater.transitions == [("tenant-a", created["id"], AlarmState.UNDETERMINED)]

    def test_conflict(self):
        """测试并发修改返回 409"""
        service = MagicMock()
        service.patch_definition.side_effect = ConflictError("d1")
        app, client = _client_for(service)
        try:
            response = client.patch(f"{BASE}/d1", json={"severity": "low"}, headers=HEADERS)
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 409
        assert response.json()["code"] == 40901


class TestDeleteAlarmDefinition:
    """DELETE 测试"""

    def test_delete(self, test_client, created):
        response = test_client.delete(f"{BASE}/{created['id']}", headers=HEADERS)
        assert response.status_code == 204

        response = test_client.get(f"{BASE}/{created['id']}", headers=HEADERS)
        assert response.status_code == 404

    def test_delete_in_use(self, repository):
        """测试仍被引用的定义返回 409"""
        lookup = MagicMock()
        lookup.has_active_alarms.return_value = True
        app, client = _client_for(AlarmDefinitionService(repository, alarm_lookup=lookup))
        try:
            created = client.post(BASE, json=CREATE_BODY, headers=HEADERS).json()["data"]
            response = client.delete(f"{BASE}/{created['id']}", headers=HEADERS)
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 409
        assert response.json()["code"] == 40902


class TestHealth:
    """健康检查测试"""

    def test_health(self, test_client):
        response = test_client.get("/health", headers={"X-Request-ID": "req_test"})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"
        assert response.headers["X-Request-ID"] == "req_test"


@pytest.fixture
def default_client(monkeypatch):
    """使用默认依赖装配（不覆盖服务）的测试客户端"""
    import api.dependencies as deps
    from api.main import app
    from core.config import get_settings

    monkeypatch.setattr(deps, "_repository", None)
    monkeypatch.setattr(deps, "_state_updater", None)
    monkeypatch.setattr(deps, "_service", None)
    get_settings.cache_clear()
    yield TestClient(app)
    get_settings.cache_clear()


class TestDefaultWiring:
    """默认依赖装配测试"""

    def test_patch_state(self, default_client):
        """测试默认装配下 state 可以被转发"""
        from api.dependencies import get_state_updater

        created = default_client.post(BASE, json=CREATE_BODY, headers=HEADERS).json()["data"]
        response = default_client.patch(
            f"{BASE}/{created['id']}", json={"state": "OK"}, headers=HEADERS
        )
        assert response.status_code == 200
        assert response.json()["data"]["version"] == 1
        assert get_state_updater().transitions == [("tenant-a", created["id"], AlarmState.OK)]

    def test_strict_mode_uses_known_actions(self, default_client, monkeypatch):
        """测试严格模式按配置的已知动作校验"""
        monkeypatch.setenv("ALARM_STRICT_ACTION_VALIDATION", "true")
        monkeypatch.setenv("ALARM_KNOWN_ACTIONS", "a1, pager")

        response = default_client.post(BASE, json=CREATE_BODY, headers=HEADERS)
        assert response.status_code == 201

        body = dict(CREATE_BODY, name="cpu unknown action", alarm_actions=["pager", "missing"])
        response = default_client.post(BASE, json=body, headers=HEADERS)
        assert response.status_code == 422
        errors = response.json()["error"]["errors"]
        assert [e["field"] for e in errors] == ["alarm_actions"]
        assert "'missing'" in errors[0]["reason"]
