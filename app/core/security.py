"""身份边界与共享密钥校验

登录/注册由外部身份服务完成，网关把已认证的用户ID放在 X-User-Id 头中转发；
游客使用前端生成的 X-Session-Id。本服务只把它们当作不透明的归属标识。
"""

import hmac
from typing import Optional

from fastapi import Header

from app.core.config import settings
from app.core.exceptions import (
    AuthenticationRequiredError,
    ForbiddenError,
    UnauthorizedCleanupError,
)


def user_owner(user_id: str) -> str:
    return f"user:{user_id}"


def guest_owner(session_id: str) -> str:
    return f"guest:{session_id}"


def get_current_owner(
    x_user_id: Optional[str] = Header(None),
    x_session_id: Optional[str] = Header(None),
) -> str:
    """当前购物车归属：已登录用户优先，其次游客会话"""
    if x_user_id:
        return user_owner(x_user_id)
    if x_session_id:
        return guest_owner(x_session_id)
    raise AuthenticationRequiredError()


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """必须登录的接口"""
    if not x_user_id:
        raise AuthenticationRequiredError()
    return x_user_id


def require_admin(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise AuthenticationRequiredError()
    if x_user_id not in settings.admin_user_ids:
        raise ForbiddenError()
    return x_user_id


def verify_shared_secret(authorization: Optional[str]) -> None:
    """校验 ``Authorization: Bearer <CRON_SECRET>``；未配置密钥时一律拒绝"""
    secret = settings.CRON_SECRET
    if not secret or not authorization:
        raise UnauthorizedCleanupError()
    if not hmac.compare_digest(authorization.encode(), f"Bearer {secret}".encode()):
        raise UnauthorizedCleanupError()


def require_shared_secret(authorization: Optional[str] = Header(None)) -> None:
    verify_shared_secret(authorization)
