from datetime import datetime, timezone


def utcnow() -> datetime:
    """带时区的当前 UTC 时间，所有过期判断统一使用"""
    return datetime.now(timezone.utc)
