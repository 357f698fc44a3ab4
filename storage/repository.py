from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from exceptions import ConflictError, FeatureUnavailableError, NotFoundError
from storage.database import (
    Base,
    CompressionRecord,
    User,
    make_engine,
    make_session_factory,
)
from utils.logging import get_logger

logger = get_logger("storage")

# Largest value an INTEGER/BIGINT column or OFFSET accepts
MAX_SQL_INT = 2**63 - 1

# API sort keys -> columns
SORT_COLUMNS = {
    "createdAt": CompressionRecord.created_at,
    "originalSize": CompressionRecord.original_size,
    "compressedSize": CompressionRecord.compressed_size,
    "compressionRatio": CompressionRecord.compression_ratio,
}


@dataclass
class NewCompression:
    """Fields of a compression record, as produced by the pipeline."""

    user_id: int
    original_filename: Optional[str]
    compressed_filename: str
    original_size: int
    compressed_size: int
    compression_ratio: float
    format: str
    quality: int
    original_width: int
    original_height: int
    compressed_width: int
    compressed_height: int
    download_url: str

    @property
    def savings(self) -> int:
        return self.original_size - self.compressed_size


class Storage(ABC):
    """Persistence for users and compression history."""

    available: bool = True

    def init_schema(self) -> None:
        """Create tables if missing."""

    def ping(self) -> bool:
        return False

    def close(self) -> None:
        pass

    # --- Users ---

    @abstractmethod
    def find_conflicting_user(self, username: str, email: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, username: str, email: str, password_hash: str, role: str = "user") -> User: ...

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def update_username(self, user_id: int, username: str) -> User: ...

    # --- Compression history ---

    @abstractmethod
    def add_compression(self, entry: NewCompression) -> CompressionRecord: ...

    @abstractmethod
    def list_compressions(
        self, user_id: int, sort_by: str, descending: bool, offset: int, limit: int
    ) -> tuple[list[CompressionRecord], int]: ...

    @abstractmethod
    def compression_totals(self, user_id: int) -> dict: ...

    @abstractmethod
    def delete_compression(self, user_id: int, record_id: int) -> Optional[CompressionRecord]: ...

    @abstractmethod
    def find_by_filename(self, filename: str) -> Optional[CompressionRecord]: ...

    @abstractmethod
    def admin_totals(self) -> dict: ...


class SqlStorage(Storage):
    """SQLAlchemy-backed storage. One short-lived session per operation."""

    def __init__(self, database_url: str):
        self._engine = make_engine(database_url)
        self._sessions = make_session_factory(self._engine)

    def init_schema(self) -> None:
        Base.metadata.create_all(bind=self._engine)

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def close(self) -> None:
        self._engine.dispose()

    # --- Users ---

    def find_conflicting_user(self, username: str, email: str) -> Optional[User]:
        with self._sessions() as session:
            stmt = select(User).where(or_(User.username == username, User.email == email))
            return session.scalars(stmt).first()

    def create_user(self, username: str, email: str, password_hash: str, role: str = "user") -> User:
        user = User(username=username, email=email, password_hash=password_hash, role=role)
        try:
            with self._sessions.begin() as session:
                session.add(user)
        except IntegrityError:
            raise ConflictError("User already exists with this email or username")
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self._sessions() as session:
            return session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._sessions() as session:
            return session.scalars(select(User).where(User.email == email)).first()

    def update_username(self, user_id: int, username: str) -> User:
        try:
            with self._sessions.begin() as session:
                user = session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User not found")
                taken = session.scalars(
                    select(User.id).where(User.username == username, User.id != user_id)
                ).first()
                if taken is not None:
                    raise ConflictError("Username already taken")
                user.username = username
        except IntegrityError:
            raise ConflictError("Username already taken")
        return user

    # --- Compression history ---

    def add_compression(self, entry: NewCompression) -> CompressionRecord:
        """Insert the record and bump the owner's counters in one transaction."""
        record = CompressionRecord(**asdict(entry))
        with self._sessions.begin() as session:
            session.add(record)
            session.execute(
                update(User)
                .where(User.id == entry.user_id)
                .values(
                    total_compressions=User.total_compressions + 1,
                    total_size_saved=User.total_size_saved + entry.savings,
                    last_compression=datetime.now(timezone.utc),
                )
            )
        return record

    def list_compressions(
        self, user_id: int, sort_by: str, descending: bool, offset: int, limit: int
    ) -> tuple[list[CompressionRecord], int]:
        column = SORT_COLUMNS[sort_by]
        if descending:
            order = (column.desc(), CompressionRecord.id.desc())
        else:
            order = (column.asc(), CompressionRecord.id.asc())

        with self._sessions() as session:
            items = session.scalars(
                select(CompressionRecord)
                .where(CompressionRecord.user_id == user_id)
                .order_by(*order)
                .offset(offset)
                .limit(limit)
            ).all()
            total = session.scalar(
                select(func.count())
                .select_from(CompressionRecord)
                .where(CompressionRecord.user_id == user_id)
            )
        return list(items), int(total or 0)

    def compression_totals(self, user_id: int) -> dict:
        with self._sessions() as session:
            row = session.execute(
                select(
                    func.count(CompressionRecord.id),
                    func.coalesce(func.sum(CompressionRecord.original_size), 0),
                    func.coalesce(func.sum(CompressionRecord.compressed_size), 0),
                    func.avg(CompressionRecord.compression_ratio),
                ).where(CompressionRecord.user_id == user_id)
            ).one()
            formats = session.scalars(
                select(CompressionRecord.format)
                .where(CompressionRecord.user_id == user_id)
                .distinct()
                .order_by(CompressionRecord.format)
            ).all()
        count, original, compressed, avg_ratio = row
        return {
            "total_compressions": int(count),
            "total_original_size": int(original),
            "total_compressed_size": int(compressed),
            "avg_compression_ratio": float(avg_ratio or 0.0),
            "formats": list(formats),
        }

    def delete_compression(self, user_id: int, record_id: int) -> Optional[CompressionRecord]:
        with self._sessions.begin() as session:
            record = session.scalars(
                select(CompressionRecord).where(
                    CompressionRecord.id == record_id,
                    CompressionRecord.user_id == user_id,
                )
            ).first()
            if record is None:
                return None
            session.execute(delete(CompressionRecord).where(CompressionRecord.id == record.id))
        return record

    def find_by_filename(self, filename: str) -> Optional[CompressionRecord]:
        with self._sessions() as session:
            return session.scalars(
                select(CompressionRecord).where(CompressionRecord.compressed_filename == filename)
            ).first()

    def admin_totals(self) -> dict:
        with self._sessions() as session:
            total_users = session.scalar(select(func.count()).select_from(User))
            count, stored, saved = session.execute(
                select(
                    func.count(CompressionRecord.id),
                    func.coalesce(func.sum(CompressionRecord.compressed_size), 0),
                    func.coalesce(
                        func.sum(CompressionRecord.original_size - CompressionRecord.compressed_size),
                        0,
                    ),
                )
            ).one()
        return {
            "total_users": int(total_users or 0),
            "total_compressions": int(count),
            "total_storage_used": int(stored),
            "total_space_saved": int(saved),
        }


class DisabledStorage(Storage):
    """Stand-in used when no DATABASE_URL is configured.

    Every call fails with FeatureUnavailableError (503); the compression
    pipeline checks `available` and skips history bookkeeping instead.
    """

    available = False

    def _unavailable(self):
        raise FeatureUnavailableError(
            "Database is not configured; accounts and history are unavailable"
        )

    def find_conflicting_user(self, username, email):
        self._unavailable()

    def create_user(self, username, email, password_hash, role="user"):
        self._unavailable()

    def get_user(self, user_id):
        self._unavailable()

    def get_user_by_email(self, email):
        self._unavailable()

    def update_username(self, user_id, username):
        self._unavailable()

    def add_compression(self, entry):
        self._unavailable()

    def list_compressions(self, user_id, sort_by, descending, offset, limit):
        self._unavailable()

    def compression_totals(self, user_id):
        self._unavailable()

    def delete_compression(self, user_id, record_id):
        self._unavailable()

    def find_by_filename(self, filename):
        self._unavailable()

    def admin_totals(self):
        self._unavailable()


def create_storage(database_url: str) -> Storage:
    if not database_url:
        logger.warning("No DATABASE_URL set; running without accounts and history")
        return DisabledStorage()
    return SqlStorage(database_url)
