"""附件文件存储 -- 本地文件系统实现

文件布局: {attachments_dir}/{task_id}/{attachment_id}_{file_name}
返回的 URL 形如 /uploads/{task_id}/{attachment_id}_{file_name}。
"""

from pathlib import Path, PurePath

import structlog

from ..config import ATTACHMENT_URL_PREFIX
from ..exceptions import PersistenceError
from ..models.task import Attachment

log = structlog.get_logger()


def _safe_file_name(file_name: str) -> str:
    """去除路径成分，防止目录穿越"""
    name = PurePath(file_name.replace("\\", "/")).name
    return name or "file"


class LocalAttachmentStorage:
    """AttachmentStorage 的本地文件系统实现"""

    def __init__(self, attachments_dir: Path) -> None:
        self._attachments_dir = attachments_dir

    async def save(self, task_id: str, attachment_id: str, file_name: str, content: bytes) -> str:
        """写入附件文件

        Returns:
            附件访问 URL

        Raises:
            PersistenceError: 文件写入失败
        """
        stored_name = f"{attachment_id}_{_safe_file_name(file_name)}"
        file_path = self._attachments_dir / task_id / stored_name
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        except OSError as e:
            raise PersistenceError(f"Failed to store attachment {file_name}: {e}") from e
        return f"{ATTACHMENT_URL_PREFIX}/{task_id}/{stored_name}"

    async def remove_for_task(self, task_id: str, attachments: list[Attachment]) -> int:
        """删除任务的附件文件（尽力而为，单个失败只记录日志）"""
        task_dir = self._attachments_dir / task_id
        removed = 0
        for attachment in attachments:
            file_path = task_dir / PurePath(attachment.file_url).name
            try:
                file_path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                log.warning(
                    "attachment_remove_failed",
                    task_id=task_id,
                    attachment_id=attachment.attachment_id,
                    error=str(e),
                )
        try:
            task_dir.rmdir()
        except OSError:
            # 目录不存在或仍有残留文件
            pass
        return removed

