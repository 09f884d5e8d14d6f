"""服务层公共的事务封装"""

from contextlib import contextmanager
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StorefrontError, PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session, action: str):
    """一个业务操作对应一个事务：成功提交，失败回滚

    数据库异常转换为 PersistenceError，不做自动重试。
    """
    try:
        yield
        db.commit()
    except StorefrontError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{action}失败: {str(e)}")
        raise PersistenceError() from e
