from __future__ import annotations

import json
import logging


def log_event(logger: logging.Logger, level: int, event: str, **fields: object) -> None:
    payload: dict[str, object] = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str))
