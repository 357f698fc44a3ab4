import asyncio
import math
from typing import Optional

from compression.params import parse_int
from exceptions import ForbiddenError, NotFoundError, ValidationError
from schemas import (
    AdminStats,
    CompressionStats,
    HistoryItem,
    HistoryResponse,
    Pagination,
    StorageTotals,
)
from security.auth import Identity
from services.accounts import to_counters
from storage.artifacts import LocalArtifactStore
from storage.repository import MAX_SQL_INT, SORT_COLUMNS, Storage
from utils.logging import get_logger

logger = get_logger("history")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SORT = "createdAt"


class HistoryService:
    """Per-user compression history, statistics and cleanup.

    Storage calls are blocking and run in worker threads.
    """

    def __init__(self, storage: Storage, artifacts: LocalArtifactStore):
        self.storage = storage
        self.artifacts = artifacts

    async def list_history(
        self,
        user_id: int,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> HistoryResponse:
        """One page of the user's records.

        Raises:
            ValidationError: Unknown sort field, page/limit below 1, or a page
                past the largest offset the database accepts.
        """
        sort_by = sort_by or DEFAULT_SORT
        if sort_by not in SORT_COLUMNS:
            raise ValidationError(
                "Invalid sortBy field", allowed=sorted(SORT_COLUMNS)
            )
        descending = sort_order != "asc"

        # Absent or unparsable falls back to the default
        page_num = parse_int(page)
        page_num = DEFAULT_PAGE if page_num is None else page_num
        limit_num = parse_int(limit)
        limit_num = DEFAULT_LIMIT if limit_num is None else limit_num
        if page_num < 1 or limit_num < 1:
            raise ValidationError("Page and limit must be positive integers")
        limit_num = min(limit_num, MAX_LIMIT)
        offset = (page_num - 1) * limit_num
        if offset > MAX_SQL_INT:
            raise ValidationError("Page is out of range")

        records, total = await asyncio.to_thread(
            self.storage.list_compressions,
            user_id,
            sort_by,
            descending,
            offset,
            limit_num,
        )

        return HistoryResponse(
            history=[HistoryItem.from_record(r) for r in records],
            pagination=Pagination(
                page=page_num,
                limit=limit_num,
                total=total,
                pages=math.ceil(total / limit_num),
                sort_by=sort_by,
                sort_order="desc" if descending else "asc",
            ),
        )

    async def stats(self, user_id: int) -> CompressionStats:
        """Aggregate over the user's records, next to the user's running counters.

        The two are reported side by side and need not reconcile: deleting a
        record does not roll back the counters.
        """
        user = await asyncio.to_thread(self.storage.get_user, user_id)
        if user is None:
            raise NotFoundError("User not found")
        totals = await asyncio.to_thread(self.storage.compression_totals, user_id)

        return CompressionStats(
            total_compressions=totals["total_compressions"],
            total_original_size=totals["total_original_size"],
            total_compressed_size=totals["total_compressed_size"],
            avg_compression_ratio=round(totals["avg_compression_ratio"], 2),
            total_size_saved=totals["total_original_size"] - totals["total_compressed_size"],
            formats=totals["formats"],
            user_stats=to_counters(user),
        )

    async def delete_record(self, user_id: int, record_id: str) -> None:
        """Delete one of the user's records and its artifact.

        Raises:
            NotFoundError: No such record owned by this user.
        """
        parsed = parse_int(record_id)
        if (
            parsed is None
            or not 1 <= parsed <= MAX_SQL_INT
            or str(parsed) != str(record_id).strip()
        ):
            raise NotFoundError("Record not found")

        record = await asyncio.to_thread(self.storage.delete_compression, user_id, parsed)
        if record is None:
            raise NotFoundError("Record not found")

        # A missing artifact is not an error
        await self.artifacts.delete(record.compressed_filename)
        logger.info(
            "Compression record deleted",
            extra={"context": {"user_id": user_id, "record_id": parsed}},
        )

    async def cleanup_by_filename(self, user_id: int, filename: str) -> None:
        """Delete an artifact (and the caller's record for it, if any).

        Raises:
            NotFoundError: Bad filename, artifact owned by another user,
                or no artifact on disk.
        """
        if self.artifacts.path_for(filename) is None:
            raise NotFoundError("File not found")

        record = await asyncio.to_thread(self.storage.find_by_filename, filename)
        if record is not None:
            if record.user_id != user_id:
                raise NotFoundError("File not found")
            await asyncio.to_thread(self.storage.delete_compression, user_id, record.id)

        if not await self.artifacts.delete(filename):
            raise NotFoundError("File not found")

    async def admin_stats(self, identity: Identity) -> AdminStats:
        """Service-wide totals. The role is re-read from storage, not the token.

        Raises:
            ForbiddenError: Caller is not an admin.
        """
        user = await asyncio.to_thread(self.storage.get_user, identity.user_id)
        if user is None or user.role != "admin":
            raise ForbiddenError("Admin access required")

        totals = await asyncio.to_thread(self.storage.admin_totals)
        return AdminStats(
            total_users=totals["total_users"],
            total_compressions=totals["total_compressions"],
            storage=StorageTotals(
                total_storage_used=totals["total_storage_used"],
                total_space_saved=totals["total_space_saved"],
            ),
        )
