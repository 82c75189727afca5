# rumlab/services/rum_store.py
"""
Persistence for RUM interaction samples.

The web layer only depends on the ``RumStore`` protocol; ``SqlRumStore`` is
the SQLAlchemy-backed implementation used by the service.
"""
import logging
from typing import List, Optional, Protocol

from sqlalchemy import Column, Float, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from rumlab.models import RumSample

logger = logging.getLogger(__name__)

Base = declarative_base()


class RumRecord(Base):
    """One stored RUM sample."""
    __tablename__ = "inp_values"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(String(64), nullable=False, index=True)
    inp = Column(Float, nullable=False)
    element = Column(String(512), nullable=False)
    device = Column(String(100), nullable=True)
    browser = Column(String(100), nullable=True)
    os = Column(String(100), nullable=True)
    connection = Column(String(50), nullable=True)
    page_url = Column(String(2048), nullable=True, index=True)

    def to_sample(self) -> RumSample:
        return RumSample(
            timestamp=self.timestamp,
            inp=int(self.inp) if float(self.inp).is_integer() else self.inp,
            element=self.element,
            device=self.device,
            browser=self.browser,
            os=self.os,
            connection=self.connection,
            pageUrl=self.page_url,
        )


class RumStore(Protocol):
    def append(self, sample: RumSample) -> None: ...

    def query(self, url: Optional[str] = None) -> List[RumSample]: ...


class SqlRumStore:
    """RumStore backed by any SQLAlchemy database URL."""

    def __init__(self, database_url: str):
        kwargs = {}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees its own empty database
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **kwargs)
        self._session_factory = sessionmaker(bind=self.engine)

    def init_db(self) -> None:
        """Creates the schema if it does not exist yet."""
        Base.metadata.create_all(bind=self.engine)

    def append(self, sample: RumSample) -> None:
        record = RumRecord(
            timestamp=sample.timestamp,
            inp=sample.inp,
            element=sample.element,
            device=sample.device,
            browser=sample.browser,
            os=sample.os,
            connection=sample.connection,
            page_url=sample.pageUrl,
        )
        session = self._session_factory()
        try:
            session.add(record)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def query(self, url: Optional[str] = None) -> List[RumSample]:
        """
        Returns stored samples ordered by timestamp, oldest first.

        Args:
            url: If given, only samples whose page URL equals it exactly.
        """
        session = self._session_factory()
        try:
            query = session.query(RumRecord)
            if url:
                query = query.filter(RumRecord.page_url == url)
            records = query.order_by(RumRecord.timestamp.asc(), RumRecord.id.asc()).all()
            return [record.to_sample() for record in records]
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
