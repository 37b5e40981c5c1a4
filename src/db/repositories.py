from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models import CacheEntryOrm


class CacheEntryRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, key: str, *, now: float) -> CacheEntryOrm | None:
        stmt = select(CacheEntryOrm).where(CacheEntryOrm.key == key, CacheEntryOrm.expires_at > now)
        return self.session.scalar(stmt)

    def upsert(self, key: str, payload: str, *, expires_at: float) -> None:
        self.session.merge(CacheEntryOrm(key=key, payload=payload, expires_at=expires_at))
        self.session.commit()

    def delete(self, key: str) -> None:
        self.session.execute(delete(CacheEntryOrm).where(CacheEntryOrm.key == key))
        self.session.commit()

    def purge_expired(self, *, now: float) -> int:
        result = self.session.execute(delete(CacheEntryOrm).where(CacheEntryOrm.expires_at <= now))
        self.session.commit()
        return result.rowcount or 0
