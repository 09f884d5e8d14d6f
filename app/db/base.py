from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# SQLite 只对 INTEGER PRIMARY KEY 自增，测试库上退化为 Integer
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
