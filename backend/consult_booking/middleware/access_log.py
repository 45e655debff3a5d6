# One JSON line per request: method / path / status / hashed IP / UA / duration.
# Never blocks the request, never writes to the database.

import json
import logging
import time

from fastapi import Request

from ..utils.hashing import hash_ip
from .rate_limit import client_ip

logger = logging.getLogger("consult_booking.access")


async def access_log_middleware(request: Request, call_next):
    start_ts = time.time()

    response = await call_next(request)

    duration_ms = int((time.time() - start_ts) * 1000)

    record = {
        "ts": int(start_ts),
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "ip_hash": hash_ip(client_ip(request)),
        "ua": request.headers.get("User-Agent", ""),
        "duration_ms": duration_ms,
    }

    logger.info(json.dumps(record, ensure_ascii=False))

    return response
