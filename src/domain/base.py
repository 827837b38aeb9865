"""Shared base for SQLModel domain entities"""

import uuid
from enum import Enum
from typing import Type
from sqlalchemy import Column, Enum as SAEnum
from sqlmodel import SQLModel


def generate_uuid() -> str:
    return str(uuid.uuid4())


def enum_column(enum_cls: Type[Enum], nullable: bool = False, **kwargs) -> Column:
    """
    Column storing a str Enum by its value (e.g. "pending"), not its name.

    Values are kept as plain VARCHAR so partial indexes and raw SQL can
    refer to them portably across PostgreSQL and SQLite.
    """
    return Column(
        SAEnum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=32,
        ),
        nullable=nullable,
        **kwargs,
    )


class BaseModel(SQLModel):
    pass
