from typing import Generic, Iterator, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from tutordesk.core.exceptions import ValidationError

T = TypeVar("T")


class LazyQuery(Generic[T]):
    """A query that runs only when iterated, and runs again on every iteration."""

    def __init__(self, db: Session, stmt: Select):
        self.db = db
        self.stmt = stmt

    def __iter__(self) -> Iterator[T]:
        return iter(self.db.scalars(self.stmt))

    def all(self) -> list[T]:
        return list(self)

    def count(self) -> int:
        return self.db.scalar(
            select(func.count()).select_from(self.stmt.order_by(None).subquery())
        ) or 0


def order_by_key(model, sort: str | None, allowed: tuple[str, ...], default: str = "-created_at"):
    """Order clauses for ``sort`` ("name", "-created_at", ...); id breaks ties."""
    key = sort or default
    descending = key.startswith("-")
    field = key.lstrip("-+")
    if field not in allowed:
        raise ValidationError.for_field("sort", f"Cannot sort by '{field}'")
    column = getattr(model, field)
    if descending:
        return column.desc(), model.id.desc()
    return column.asc(), model.id.asc()
