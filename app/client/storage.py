import json
import logging
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, create_engine, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from app.client.errors import StorageError

logger = logging.getLogger(__name__)

LocalBase = declarative_base()


class StorageItem(LocalBase):
    __tablename__ = "local_storage"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class LocalStorage:
    """Durable key/value storage for one client, values stored as JSON.

    Writes that would take the total stored size over ``quota_bytes`` are
    rejected with :class:`StorageError`, as are values that cannot be
    serialised.
    """

    def __init__(self, url: str, quota_bytes: int = 5 * 1024 * 1024):
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.quota_bytes = quota_bytes
        self.engine = create_engine(url, connect_args=connect_args)
        LocalBase.metadata.create_all(bind=self.engine)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False)

    def get_item(self, key: str, default=None):
        session = self._session_factory()
        try:
            item = session.get(StorageItem, key)
            if item is None:
                return default
            return json.loads(item.value)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {key!r} from local storage: {exc}") from exc
        except ValueError:
            logger.warning("Discarding corrupt local storage value for key=%s", key)
            return default
        finally:
            session.close()

    def set_item(self, key: str, value) -> None:
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value for {key!r} is not serialisable: {exc}") from exc

        session = self._session_factory()
        try:
            used = (
                session.query(func.coalesce(func.sum(func.length(StorageItem.value)), 0))
                .filter(StorageItem.key != key)
                .scalar()
            )
            if used + len(serialized) > self.quota_bytes:
                raise StorageError(
                    f"Local storage quota exceeded writing {key!r} "
                    f"({used + len(serialized)} > {self.quota_bytes} bytes)"
                )
            item = session.get(StorageItem, key)
            if item:
                item.value = serialized
            else:
                session.add(StorageItem(key=key, value=serialized))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Failed to write {key!r} to local storage: {exc}") from exc
        finally:
            session.close()

    def remove_item(self, key: str) -> None:
        session = self._session_factory()
        try:
            session.query(StorageItem).filter(StorageItem.key == key).delete()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Failed to remove {key!r} from local storage: {exc}") from exc
        finally:
            session.close()

    def keys(self) -> list[str]:
        session = self._session_factory()
        try:
            return [key for (key,) in session.query(StorageItem.key).order_by(StorageItem.key).all()]
        finally:
            session.close()

    def close(self) -> None:
        self.engine.dispose()
