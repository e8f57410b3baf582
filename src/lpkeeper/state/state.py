"""
Durable record of the tracked position.

The file is a cache of what the keeper last believes it did. The ledger is
the source of truth; anything unreadable here is treated as "no position".
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

log = logging.getLogger("lpkeeper")

NO_POSITION = "none"

# Written by earlier deployments: {"tokenId": "0", "lastCheck": ms}
_LEGACY_ID_KEY = "tokenId"
_LEGACY_TS_KEY = "lastCheck"
_LEGACY_NO_POSITION = "0"


@dataclass(frozen=True)
class PositionRecord:
    position_id: str = NO_POSITION
    last_checked_at: int = 0

    @property
    def has_position(self) -> bool:
        return self.position_id != NO_POSITION

    def to_dict(self) -> Dict[str, Any]:
        return {"positionId": self.position_id, "lastCheckedAt": self.last_checked_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PositionRecord":
        if "positionId" in data:
            raw_id, raw_ts = data["positionId"], data.get("lastCheckedAt", 0)
        elif _LEGACY_ID_KEY in data:
            raw_id, raw_ts = data[_LEGACY_ID_KEY], data.get(_LEGACY_TS_KEY, 0)
            if str(raw_id) == _LEGACY_NO_POSITION:
                raw_id = NO_POSITION
        else:
            raise ValueError("missing positionId")
        position_id = str(raw_id).strip()
        if not position_id:
            raise ValueError("empty positionId")
        return cls(position_id=position_id, last_checked_at=int(raw_ts))


class StateStore:
    def __init__(self, account: str, state_dir: str) -> None:
        safe = account.lower().replace(":", "_").replace("/", "_")
        self.path = Path(state_dir) / f"bot_state_{safe}.json"
        self.tmp = self.path.with_suffix(".tmp")
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> PositionRecord:
        if not self.path.exists():
            return PositionRecord()
        try:
            data = json.loads(self.path.read_text())
            if not isinstance(data, dict):
                raise ValueError(f"expected object, got {type(data).__name__}")
            return PositionRecord.from_dict(data)
        except (OSError, ValueError, TypeError) as exc:
            log.error(json.dumps({"event": "state_load_error", "path": str(self.path), "err": str(exc)}))
            return PositionRecord()

    def save(self, position_id: str) -> PositionRecord:
        """Overwrite the record and stamp the current time. Errors propagate."""
        record = PositionRecord(position_id=str(position_id), last_checked_at=int(time.time() * 1000))
        self.tmp.write_text(json.dumps(record.to_dict(), indent=2))
        self.tmp.replace(self.path)
        log.info(json.dumps({"event": "state_saved", "position_id": record.position_id}))
        return record
