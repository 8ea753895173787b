"""Declarative base shared by all ledger tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
