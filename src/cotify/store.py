#!/usr/bin/env python3
"""
Table-keyed data store used by the import pipeline.

The importer only needs insert, bulk insert and select against named
collections, the way a hosted REST database exposes them. TableStore
provides that contract on top of the SQLAlchemy models; records cross
the boundary as plain dicts.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .models import Base, Branch, Order, Product, Supplier

logger = logging.getLogger("cotify")

TABLES: Dict[str, Type[Base]] = {
    "suppliers": Supplier,
    "branches": Branch,
    "products": Product,
    "orders": Order,
}


class StoreError(Exception):
    """Raised when the store rejects an operation"""

    pass


class TableStore:
    """
    insert/select/update/delete keyed by table name.

    Each call runs in its own session and commits before returning, so a
    failed call never leaves partial writes behind it.

    Example:
        >>> store = TableStore(Config.get_session_maker())
        >>> store.insert("products", {"name": "Café", "unit": "KG"})
        {'id': 1, 'name': 'Café', 'unit': 'KG', 'ncm': None}
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @staticmethod
    def _model(table: str) -> Type[Base]:
        try:
            return TABLES[table]
        except KeyError:
            raise StoreError(f"Unknown table '{table}'") from None

    def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one record and return it with its generated id"""
        return self.insert_many(table, [values])[0]

    def insert_many(self, table: str, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert all rows in one transaction; either all persist or none"""
        model = self._model(table)
        rows = list(rows)
        with self.session_factory() as session:
            try:
                entities = [model(**values) for values in rows]
                session.add_all(entities)
                session.commit()
                return [e.to_dict() for e in entities]
            except (SQLAlchemyError, TypeError) as e:
                session.rollback()
                logger.error(f"Failed to insert {len(rows)} row(s) into {table}: {e}")
                raise StoreError(f"Failed to insert into {table}: {e}") from e

    def select(self, table: str, order_by: Optional[str] = None, **filters) -> List[Dict[str, Any]]:
        """All records of a table matching the equality filters"""
        model = self._model(table)
        query = select(model).filter_by(**filters)
        if order_by:
            query = query.order_by(getattr(model, order_by))
        with self.session_factory() as session:
            try:
                return [e.to_dict() for e in session.execute(query).scalars().all()]
            except SQLAlchemyError as e:
                logger.error(f"Failed to read {table}: {e}")
                raise StoreError(f"Failed to read {table}: {e}") from e

    def get(self, table: str, id: int) -> Optional[Dict[str, Any]]:
        """One record by id, or None"""
        model = self._model(table)
        with self.session_factory() as session:
            try:
                entity = session.get(model, id)
            except SQLAlchemyError as e:
                logger.error(f"Failed to read {table} record {id}: {e}")
                raise StoreError(f"Failed to read {table}: {e}") from e
            return entity.to_dict() if entity else None

    def update(self, table: str, id: int, values: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(table)
        with self.session_factory() as session:
            entity = session.get(model, id)
            if entity is None:
                raise StoreError(f"{table} record {id} not found")
            try:
                for key, value in values.items():
                    setattr(entity, key, value)
                session.commit()
                return entity.to_dict()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to update {table} record {id}: {e}")
                raise StoreError(f"Failed to update {table}: {e}") from e

    def delete(self, table: str, id: int) -> None:
        """Delete a record; dependent orders go with it"""
        model = self._model(table)
        with self.session_factory() as session:
            entity = session.get(model, id)
            if entity is None:
                raise StoreError(f"{table} record {id} not found")
            try:
                session.delete(entity)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to delete {table} record {id}: {e}")
                raise StoreError(f"Failed to delete from {table}: {e}") from e
