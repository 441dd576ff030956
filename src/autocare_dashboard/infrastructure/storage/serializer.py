from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def dump_records(records: list[dict[str, Any]]) -> str:
    return json.dumps(records, cls=_Encoder)


def load_records(raw: str | None) -> list[dict[str, Any]]:
    """Decode a stored JSON array; corrupt or non-array values read as empty."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Discarding corrupt local record array")
        return []
    if not isinstance(data, list):
        logger.warning("Discarding local value that is not an array")
        return []
    return [item for item in data if isinstance(item, dict)]
