from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from fantasy_ingest.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Thin query helpers over one mapped model. Transactions belong to the caller."""

    def __init__(self, session: Session, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    def add(self, obj: ModelT, *, flush: bool = True) -> ModelT:
        self.session.add(obj)
        if flush:
            self.session.flush()
        return obj

    def first_where(
        self, *predicates: ColumnElement[bool], order_by: Sequence[Any] = ()
    ) -> ModelT | None:
        return self.session.scalars(
            select(self.model).where(*predicates).order_by(*order_by).limit(1)
        ).first()

    def list_where(
        self, *predicates: ColumnElement[bool], order_by: Sequence[Any] = (), limit: int = 100
    ) -> list[ModelT]:
        return list(
            self.session.scalars(
                select(self.model).where(*predicates).order_by(*order_by).limit(limit)
            ).all()
        )
