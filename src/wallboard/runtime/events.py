# src/wallboard/runtime/events.py
from __future__ import annotations

"""Structured event records and the sinks they are written to.

Each event is encoded as sha256("event:<Name>")[:8] followed by its fields in
declaration order. Consumers see the base64 of that payload as a
"Program data: ..." line, plus the decoded JSON form.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Union

from wallboard.runtime.codec import CodecError, Reader, Writer, discriminator

Json = Dict[str, Any]


@dataclass(frozen=True)
class WallInitialized:
    wall_id: int
    dev_wallet: str

    NAME = "WallInitialized"

    def encode(self) -> bytes:
        return Writer().raw(EVENT_DISCRIMINATORS[self.NAME]).u64(self.wall_id).pubkey(self.dev_wallet).to_bytes()

    def to_json(self) -> Json:
        return {"wall_id": self.wall_id, "dev_wallet": self.dev_wallet}


@dataclass(frozen=True)
class MessagePosted:
    wall_id: int
    user: str
    message: str
    timestamp: int

    NAME = "MessagePosted"

    def encode(self) -> bytes:
        return (
            Writer()
            .raw(EVENT_DISCRIMINATORS[self.NAME])
            .u64(self.wall_id)
            .pubkey(self.user)
            .string(self.message)
            .i64(self.timestamp)
            .to_bytes()
        )

    def to_json(self) -> Json:
        return {"wall_id": self.wall_id, "user": self.user, "message": self.message, "timestamp": self.timestamp}


Event = Union[WallInitialized, MessagePosted]

EVENT_DISCRIMINATORS: Dict[str, bytes] = {
    WallInitialized.NAME: discriminator("event", WallInitialized.NAME),
    MessagePosted.NAME: discriminator("event", MessagePosted.NAME),
}


def decode_event(data: bytes) -> Event:
    r = Reader(data)
    disc = r.take(8)
    if disc == EVENT_DISCRIMINATORS[WallInitialized.NAME]:
        ev: Event = WallInitialized(wall_id=r.u64(), dev_wallet=r.pubkey())
    elif disc == EVENT_DISCRIMINATORS[MessagePosted.NAME]:
        ev = MessagePosted(wall_id=r.u64(), user=r.pubkey(), message=r.string(), timestamp=r.i64())
    else:
        raise CodecError("unknown_event", f"unknown event discriminator {disc.hex()}")
    r.expect_end()
    return ev


@dataclass(frozen=True)
class EventRecord:
    name: str
    wall_id: int
    fields: Json
    data_b64: str

    @staticmethod
    def from_event(ev: Event) -> "EventRecord":
        return EventRecord(
            name=ev.NAME,
            wall_id=int(ev.wall_id),
            fields=ev.to_json(),
            data_b64=base64.b64encode(ev.encode()).decode("ascii"),
        )

    @property
    def log_line(self) -> str:
        return f"Program data: {self.data_b64}"

    def to_json(self) -> Json:
        return {"name": self.name, "wall_id": self.wall_id, "fields": self.fields, "data": self.data_b64}


class EventSink(Protocol):
    def append(self, record: EventRecord) -> None: ...


@dataclass
class MemoryEventSink:
    """Append-only in-process sink; also used as the per-transaction buffer."""

    records: List[EventRecord] = field(default_factory=list)

    def append(self, record: EventRecord) -> None:
        self.records.append(record)

    def __len__(self) -> int:
        return len(self.records)

    def named(self, name: str) -> List[EventRecord]:
        return [r for r in self.records if r.name == name]


class Emitter:
    def __init__(self, sink: EventSink) -> None:
        self._sink = sink

    def emit(self, ev: Event) -> EventRecord:
        rec = EventRecord.from_event(ev)
        self._sink.append(rec)
        return rec
