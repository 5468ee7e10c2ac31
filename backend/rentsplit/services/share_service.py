import logging
import re
from collections import OrderedDict
from datetime import datetime, timezone

from rentsplit.schemas.calculation import CalculationData
from rentsplit.schemas.share import ShareRecord

logger = logging.getLogger(__name__)

_SHARE_ID_RE = re.compile(r"[a-zA-Z0-9]+")


class InvalidShareIdError(ValueError):
    pass


class ShareExistsError(ValueError):
    pass


def is_valid_share_id(share_id: str) -> bool:
    return isinstance(share_id, str) and bool(_SHARE_ID_RE.fullmatch(share_id))


class ShareStore:
    """
    Best-effort in-memory store of shared calculations, keyed by an
    alphanumeric id. Nothing survives a restart. When max_entries is reached
    the oldest record is evicted.
    """

    def __init__(self, max_entries: int | None = None):
        self.max_entries = max_entries
        self._records: OrderedDict[str, ShareRecord] = OrderedDict()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, share_id: str) -> bool:
        return share_id in self._records

    def save(self, share_id: str, data: CalculationData) -> ShareRecord:
        if not is_valid_share_id(share_id):
            raise InvalidShareIdError("Invalid ID format. Must contain only alphanumeric characters")
        if share_id in self._records:
            raise ShareExistsError("ID already exists. Please generate a new shareable link.")

        if self.max_entries and len(self._records) >= self.max_entries:
            evicted, _ = self._records.popitem(last=False)
            logger.info(f"Share store full, evicted {evicted}")

        record = ShareRecord(
            id=share_id,
            data=data,
            created_at=datetime.now(timezone.utc),
        )
        self._records[share_id] = record
        logger.info(f"Stored share {share_id} ({len(data.roommates)} roommates)")
        return record

    def get(self, share_id: str) -> ShareRecord | None:
        record = self._records.get(share_id)
        if record is None:
            logger.info(f"Share {share_id} not found")
        return record
