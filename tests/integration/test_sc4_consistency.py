"""SC-4 一致性集成测试

1. 依赖环在写入时被拒绝
2. 依赖完成后才能完成下游任务
3. 并发整体更新：同一基线版本只有一个写入成功
"""

import asyncio
from datetime import timedelta

from httpx import AsyncClient

ALICE = {"X-User-ID": "u-alice"}


class TestSC4Consistency:
    async def test_dependency_cycle_rejected(self, client: AsyncClient, clock):
        due = (clock.now + timedelta(days=3)).isoformat()
        a = (await client.post("/api/tasks", json={"title": "A", "dueDate": due}, headers=ALICE)).json()
        b = (
            await client.post(
                "/api/tasks",
                json={"title": "B", "dueDate": due, "dependencies": [a["id"]]},
                headers=ALICE,
            )
        ).json()

        resp = await client.put(
            f"/api/tasks/{a['id']}",
            json={"title": "A", "dueDate": due, "dependencies": [b["id"]]},
            headers=ALICE,
        )

        assert resp.status_code == 422
        details = resp.json()["error"]["details"]
        assert details["field"] == "dependencies"
        assert details["cycle"] == [a["id"], b["id"], a["id"]]

    async def test_dependency_gates_completion(self, client: AsyncClient, clock):
        due = (clock.now + timedelta(days=3)).isoformat()
        upstream = (
            await client.post("/api/tasks", json={"title": "Upstream", "dueDate": due}, headers=ALICE)
        ).json()
        downstream = (
            await client.post(
                "/api/tasks",
                json={"title": "Downstream", "dueDate": due, "dependencies": [upstream["id"]]},
                headers=ALICE,
            )
        ).json()

        resp = await client.post(f"/api/tasks/{downstream['id']}/complete", headers=ALICE)
        assert resp.status_code == 409

        assert (await client.post(f"/api/tasks/{upstream['id']}/complete", headers=ALICE)).status_code == 200
        assert (await client.post(f"/api/tasks/{downstream['id']}/complete", headers=ALICE)).status_code == 200

    async def test_concurrent_updates_with_same_base_version(self, client: AsyncClient, clock):
        due = (clock.now + timedelta(days=3)).isoformat()
        task = (
            await client.post("/api/tasks", json={"title": "Draft", "dueDate": due}, headers=ALICE)
        ).json()
        url = f"/api/tasks/{task['id']}"

        responses = await asyncio.gather(
            client.put(url, json={"title": "Left", "dueDate": due, "version": 1}, headers=ALICE),
            client.put(url, json={"title": "Right", "dueDate": due, "version": 1}, headers=ALICE),
        )

        assert sorted(r.status_code for r in responses) == [200, 409]
        winner = next(r for r in responses if r.status_code == 200).json()
        fetched = (await client.get(url)).json()
        assert fetched["title"] == winner["title"]
        assert fetched["version"] == 2
