"""Shared state store used by every service.

Thin layer over the Flask-SQLAlchemy session exposing the only operations the
engine relies on: filtered reads, inserts and partial updates. Writers never
coordinate across devices; ``commit=False`` lets a single logical step (such as
activating a session) batch several writes into one commit.
"""

from typing import Any, Callable, Dict, List, Optional, Type

from live_audience import db


def list_records(model: Type[db.Model], predicate: Optional[Callable[[Any], bool]] = None, order_by=None, **filters) -> List[Any]:
    query = model.query.filter_by(**filters)
    query = query.order_by(order_by if order_by is not None else model.id)
    records = query.all()
    if predicate is not None:
        records = [r for r in records if predicate(r)]
    return records


def get_record(model: Type[db.Model], record_id) -> Optional[Any]:
    if record_id is None:
        return None
    return db.session.get(model, record_id)


def insert(record, commit: bool = True):
    db.session.add(record)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return record


def update(model: Type[db.Model], record_id, patch: Dict[str, Any], commit: bool = True):
    record = get_record(model, record_id)
    if record is None:
        return None
    for key, value in patch.items():
        setattr(record, key, value)
    db.session.add(record)
    if commit:
        db.session.commit()
    return record


def update_where(model: Type[db.Model], patch: Dict[str, Any], *criteria) -> int:
    """Bulk partial update; the caller commits."""
    return model.query.filter(*criteria).update(patch, synchronize_session='fetch')


def delete(record, commit: bool = True) -> None:
    db.session.delete(record)
    if commit:
        db.session.commit()


def commit() -> None:
    db.session.commit()


def rollback() -> None:
    db.session.rollback()
