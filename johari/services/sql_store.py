# johari/services/sql_store.py
import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from johari.core.database import build_sessionmaker
from johari.models.document import DocumentRecord
from johari.services.change_feed import ChangeFeed
from johari.services.document_store import DocumentSnapshot, DocumentStore, matches_filters, split_path

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SqlDocumentStore(DocumentStore):
    """Keeps every document as a JSON row of the `documents` table, keyed by path."""

    unavailable_errors = DocumentStore.unavailable_errors + (SQLAlchemyError,)

    def __init__(self, engine: AsyncEngine, feed: Optional[ChangeFeed] = None, timeout: Optional[float] = None):
        super().__init__(feed=feed, timeout=timeout)
        self.engine = engine
        self.sessionmaker = build_sessionmaker(engine)

    async def _write(self, path: str, data: Dict[str, Any]) -> None:
        path = path.strip("/")
        collection, doc_id = split_path(path)
        values = {
            "path": path,
            "collection": collection,
            "doc_id": doc_id,
            "data": data,
            "updated_at": datetime.datetime.now(datetime.timezone.utc),
        }
        insert = _UPSERT_INSERTS.get(self.engine.dialect.name)
        async with self.sessionmaker() as db:
            if insert is not None:
                # Single statement, so concurrent writers to one path never produce two rows.
                stmt = insert(DocumentRecord).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[DocumentRecord.path],
                    set_={"data": stmt.excluded.data, "updated_at": stmt.excluded.updated_at},
                )
                await db.execute(stmt)
            else:
                logger.debug(f"No native upsert for dialect '{self.engine.dialect.name}', merging '{path}'")
                await db.merge(DocumentRecord(**values))
            await db.commit()

    async def _read(self, path: str) -> Optional[DocumentSnapshot]:
        async with self.sessionmaker() as db:
            record = await db.get(DocumentRecord, path.strip("/"))
            if record is None:
                return None
            return DocumentSnapshot(id=record.doc_id, path=record.path, data=dict(record.data))

    async def _update(self, path: str, fields: Dict[str, Any]) -> Optional[DocumentSnapshot]:
        async with self.sessionmaker() as db:
            async with db.begin():
                # Row lock on Postgres; SQLite already runs one writer at a time.
                result = await db.execute(
                    select(DocumentRecord)
                    .where(DocumentRecord.path == path.strip("/"))
                    .with_for_update()
                )
                record = result.scalar_one_or_none()
                if record is None:
                    return None
                record.data = {**record.data, **fields}
                record.updated_at = datetime.datetime.now(datetime.timezone.utc)
            return DocumentSnapshot(id=record.doc_id, path=record.path, data=dict(record.data))

    async def _query(self, collection: str, filters: Dict[str, Any]) -> List[DocumentSnapshot]:
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(DocumentRecord)
                .where(DocumentRecord.collection == collection)
                .order_by(DocumentRecord.path)
            )
            records = result.scalars().all()
        return [
            DocumentSnapshot(id=record.doc_id, path=record.path, data=dict(record.data))
            for record in records
            if matches_filters(record.data, filters)
        ]
