"""NotificationDispatcher 单元测试

测试内容：
1. 每个去重后的接收者恰好一条通知
2. 单个接收者失败被记录，不抛出
3. 通知内容（type / relatedJobId / 标题截断）
"""

from unittest.mock import AsyncMock

from jobtrack.core.models import NotificationType
from jobtrack.core.notifications import NotificationDispatcher, build_notification


class TestBuildNotification:
    def test_fields(self, make_task):
        task = make_task(title="Write docs")
        notification = build_notification(NotificationType.TASK_ASSIGNED, task, "u-bob")
        assert notification.user_id == "u-bob"
        assert notification.type == NotificationType.TASK_ASSIGNED
        assert notification.related_task_id == task.task_id
        assert "Write docs" in notification.message

    def test_long_title_truncated(self, make_task):
        task = make_task(title="x" * 200)
        notification = build_notification(NotificationType.TASK_UPDATED, task, "u-bob")
        assert "x" * 77 + "..." in notification.message
        assert "x" * 78 not in notification.message


class TestNotificationDispatcher:
    """通知扇出"""

    async def test_one_notification_per_distinct_recipient(self, make_task):
        sender = AsyncMock()
        dispatcher = NotificationDispatcher(sender)
        task = make_task()

        results = await dispatcher.notify(
            NotificationType.TASK_COMPLETED, task, ["u-bob", "u-carol", "u-bob", ""]
        )

        assert [r.user_id for r in results] == ["u-bob", "u-carol"]
        assert all(r.delivered for r in results)
        assert sender.send.await_count == 2
        sent_to = sorted(call.args[0].user_id for call in sender.send.await_args_list)
        assert sent_to == ["u-bob", "u-carol"]

    async def test_no_recipients(self, make_task):
        sender = AsyncMock()
        results = await NotificationDispatcher(sender).notify(
            NotificationType.TASK_UPDATED, make_task(), []
        )
        assert results == []
        sender.send.assert_not_awaited()

    async def test_failure_recorded_and_others_delivered(self, make_task):
        async def send(notification):
            if notification.user_id == "u-bob":
                raise ConnectionError("notification service down")

        sender = AsyncMock()
        sender.send.side_effect = send
        dispatcher = NotificationDispatcher(sender, concurrency=1)

        results = await dispatcher.notify(
            NotificationType.TASK_DELETED, make_task(), ["u-bob", "u-carol"]
        )

        by_user = {r.user_id: r for r in results}
        assert by_user["u-bob"].delivered is False
        assert by_user["u-bob"].error_type == "ConnectionError"
        assert by_user["u-carol"].delivered is True
