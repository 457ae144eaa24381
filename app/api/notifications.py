"""
站内通知接口
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_current_user_id, get_notification_repository
from app.models.notification import Notification
from app.repositories.notification_repository import NotificationRepository

router = APIRouter(prefix="/notifications", tags=["通知"])


def require_user(user_id: Optional[str] = Depends(get_current_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="需要登录")
    return user_id


@router.get("", response_model=List[Notification])
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(require_user),
    repo: NotificationRepository = Depends(get_notification_repository)
):
    db_notifications = await repo.get_user_notifications(user_id, limit, offset, unread_only)
    return [repo.to_model(n) for n in db_notifications]


@router.get("/unread-count")
async def unread_count(
    user_id: str = Depends(require_user),
    repo: NotificationRepository = Depends(get_notification_repository)
):
    return {"unread": await repo.count_unread(user_id)}


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    user_id: str = Depends(require_user),
    repo: NotificationRepository = Depends(get_notification_repository)
):
    if not await repo.mark_as_read(notification_id, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="通知不存在")
    await repo.db.commit()
    return {"success": True}
