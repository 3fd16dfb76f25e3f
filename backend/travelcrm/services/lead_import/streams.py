from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import redis
from redis.exceptions import ResponseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamMessage:
    id: str
    fields: dict[str, str]
    # set when the entry is not valid UTF-8; fields is empty then
    decode_error: str | None = None


@dataclass(frozen=True)
class PendingEntry:
    id: str
    consumer: str
    idle_ms: int
    deliveries: int


def _decode(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, (bytes, bytearray)) else str(value)


def _to_message(entry_id: Any, fields: Any) -> StreamMessage:
    entry = _decode(entry_id)
    try:
        decoded = {_decode(k): _decode(v) for k, v in (fields or {}).items()}
    except UnicodeDecodeError as exc:
        logger.warning("stream_entry_undecodable entry_id=%s error=%s", entry, exc)
        return StreamMessage(id=entry, fields={}, decode_error=str(exc))
    return StreamMessage(id=entry, fields=decoded)


class RedisStreamTransport:
    """
    Redis stream with one consumer group.

    Each entry is delivered to one consumer of the group at a time and stays in the
    group's pending list until acknowledged.
    """

    def __init__(self, client: redis.Redis, stream_key: str, group: str):
        self.client = client
        self.stream_key = stream_key
        self.group = group

    def ensure_group(self, start_id: str = "0-0") -> bool:
        """Create the group (and the stream). Returns False when it already exists."""
        try:
            self.client.xgroup_create(self.stream_key, self.group, id=start_id, mkstream=True)
        except ResponseError as exc:
            if "BUSYGROUP" in str(exc):
                return False
            raise
        logger.info("stream_group_created stream=%s group=%s", self.stream_key, self.group)
        return True

    def append(self, fields: dict[str, str]) -> str:
        return _decode(self.client.xadd(self.stream_key, fields))

    def read(self, consumer: str, count: int = 1, block_ms: int | None = None) -> list[StreamMessage]:
        """Read entries never delivered to this group. Blocks up to block_ms when empty."""
        response = self.client.xreadgroup(
            self.group,
            consumer,
            {self.stream_key: ">"},
            count=count,
            # BLOCK 0 would wait forever
            block=block_ms or None,
        )
        messages: list[StreamMessage] = []
        for _stream, entries in response or []:
            for entry_id, fields in entries:
                messages.append(_to_message(entry_id, fields))
        return messages

    def ack(self, *entry_ids: str) -> int:
        """Acknowledge entries. Already acknowledged or unknown ids are ignored."""
        if not entry_ids:
            return 0
        return int(self.client.xack(self.stream_key, self.group, *entry_ids))

    def pending(self, count: int = 100, consumer: str | None = None) -> list[PendingEntry]:
        rows = self.client.xpending_range(
            self.stream_key,
            self.group,
            min="-",
            max="+",
            count=count,
            consumername=consumer,
        )
        return [
            PendingEntry(
                id=_decode(row["message_id"]),
                consumer=_decode(row["consumer"]),
                idle_ms=int(row["time_since_delivered"]),
                deliveries=int(row["times_delivered"]),
            )
            for row in rows
        ]

    def claim_idle(
        self,
        consumer: str,
        min_idle_ms: int,
        count: int = 10,
        start_id: str = "0-0",
    ) -> tuple[str, list[StreamMessage]]:
        """
        Take over up to count entries another consumer left pending for at least
        min_idle_ms. Returns the cursor to continue from ("0-0" once the pending
        list has been scanned) and the claimed entries.
        """
        response = self.client.xautoclaim(
            self.stream_key,
            self.group,
            consumer,
            min_idle_time=min_idle_ms,
            start_id=start_id,
            count=count,
        )
        if not response:
            return "0-0", []
        cursor = _decode(response[0])
        entries = response[1] if len(response) > 1 else []
        # deleted entries come back with no fields
        return cursor, [_to_message(entry_id, fields) for entry_id, fields in entries if fields]

    def delete(self, *entry_ids: str) -> int:
        if not entry_ids:
            return 0
        return int(self.client.xdel(self.stream_key, *entry_ids))

    def length(self) -> int:
        return int(self.client.xlen(self.stream_key))
