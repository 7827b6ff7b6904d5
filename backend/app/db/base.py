from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase


# SQLite n'auto-incrémente que les colonnes INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass
