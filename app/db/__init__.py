from .base import Base
from .session import engine

# 注册全部模型，保证字符串形式的 relationship 能被解析
from app.models import *

# Export for convenience
__all__ = ["Base", "engine"]
