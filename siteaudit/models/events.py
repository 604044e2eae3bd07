from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    STATUS_UPDATE = "status_update"


class EventStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StatusEvent:
    message: str
    status: EventStatus = EventStatus.PROCESSING
    id: str | None = None
    count: int | None = None
    event: EventType = EventType.STATUS_UPDATE
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.status in (EventStatus.COMPLETED, EventStatus.FAILED)

    def payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message, "status": self.status.value}
        if self.id is not None:
            data["id"] = self.id
        if self.count is not None:
            data["count"] = self.count
        data.update(self.extra)
        return data

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.payload())}\n\n"
