"""
Module: replenishment_kernel.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models, with a type
    annotation map so column types are consistent across the schema.
Architecture position: Kernel > DB.  The lowest-level import target for
    models/.  MUST NOT import from models/, services/, repositories/, or
    domain/.

Invariants enforced:
    - Money maps to Numeric(18, 4); never float.
    - Timestamps map to DateTime(timezone=True).
    - Plain ``dict`` / ``list`` annotations map to the portable JSON type,
      so the schema runs on PostgreSQL and SQLite alike.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from sqlalchemy import JSON, DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base for all replenishment models.

    Entities carry their own natural string keys (order_id, schedule_id...),
    so no surrogate id is imposed here.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 4),
        datetime: DateTime(timezone=True),
        str: String(200),
        dict[str, Any]: JSON,
        list[Any]: JSON,
    }
