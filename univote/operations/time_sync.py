# univote/operations/time_sync.py
# Voting windows are enforced against the server clock, so readiness can include
# an NTP drift check.

import logging
from datetime import datetime, timezone
from typing import Dict, List, Sequence

import ntplib

logger = logging.getLogger(__name__)

NTP_SERVERS = [
    "pool.ntp.org",
    "time.google.com",
    "time.cloudflare.com",
]

# Maximum acceptable time offset in seconds
MAX_ALLOWED_OFFSET = 1.0


def check_time_sync(servers: Sequence[str] = NTP_SERVERS, max_offset: float = MAX_ALLOWED_OFFSET,
                    timeout: float = 2) -> Dict:
    """
    Check time offset against NTP servers.
    Returns:
        A dictionary containing offsets, average drift, and overall health.
    """
    results: List[Dict] = []
    offsets: List[float] = []
    client = ntplib.NTPClient()

    for server in servers:
        try:
            response = client.request(server, version=3, timeout=timeout)
        except (ntplib.NTPException, OSError) as e:
            logger.warning("NTP query to %s failed: %s", server, e)
            results.append({"server": server, "error": str(e), "status": "failed"})
            continue
        offsets.append(response.offset)
        results.append({
            "server": server,
            "offset_s": round(response.offset, 6),
            "time": datetime.fromtimestamp(response.tx_time, tz=timezone.utc).isoformat(),
            "status": "ok" if abs(response.offset) <= max_offset else "drifted",
        })

    avg_offset = round(sum(offsets) / len(offsets), 6) if offsets else None
    return {
        "overall_ok": avg_offset is not None and abs(avg_offset) <= max_offset,
        "average_offset_s": avg_offset,
        "max_allowed_offset_s": max_offset,
        "results": results,
    }
