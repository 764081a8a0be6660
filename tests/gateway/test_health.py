"""健康检查测试

测试内容：
1. /health 永远 200
2. /ready core profile 检查 SQLite 与附件目录，通知服务跳过
3. /ready?profile=full 探测通知服务
"""

import shutil

from httpx import AsyncClient


class _UnreachableSender:
    async def health_check(self) -> bool:
        return False


class TestHealth:
    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestReady:
    async def test_core_profile(self, client: AsyncClient):
        resp = await client.get("/ready")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ready"
        assert body["profile"] == "core"
        assert body["checks"]["sqlite"] == "ok"
        assert body["checks"]["sqlite_wal"] == "ok"
        assert body["checks"]["attachments_dir"] == "ok"
        assert body["checks"]["disk_space_mb"] >= 0
        assert body["checks"]["notification_api"] == "skipped"

    async def test_full_profile_with_log_sender(self, client: AsyncClient):
        resp = await client.get("/ready", params={"profile": "full"})
        assert resp.status_code == 200
        assert resp.json()["checks"]["notification_api"] == "ok"

    async def test_full_profile_unreachable_notification_api(self, app, client: AsyncClient):
        app.state.notification_sender = _UnreachableSender()

        resp = await client.get("/ready", params={"profile": "full"})

        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "not_ready"
        assert body["checks"]["notification_api"] == "unreachable"

    async def test_missing_attachments_dir(self, app, client: AsyncClient):
        shutil.rmtree(app.state.store_group.attachments_dir)

        resp = await client.get("/ready")

        assert resp.status_code == 503
        assert resp.json()["checks"]["attachments_dir"].startswith("error")
