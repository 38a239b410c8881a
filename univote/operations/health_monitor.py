# univote/operations/health_monitor.py
# Liveness/readiness checks: data directory writable, free disk, optional clock drift.

import os
import shutil
import tempfile
from typing import Dict

from univote.operations.time_sync import check_time_sync


def check_data_dir(data_dir: str) -> Dict:
    try:
        os.makedirs(data_dir, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=data_dir, prefix=".health-", delete=True) as probe:
            probe.write(b"ok")
            probe.flush()
        return {"ok": True, "data_dir": data_dir}
    except OSError as e:
        return {"ok": False, "error": str(e), "data_dir": data_dir}


def check_disk(path: str, min_free_gb: float) -> Dict:
    total, used, free = shutil.disk_usage(path)
    free_gb = free / (1024 ** 3)
    return {"ok": free_gb >= min_free_gb, "free_gb": round(free_gb, 2), "min_required_gb": min_free_gb}


def check_readiness(data_dir: str, min_free_gb: float = 1.0, check_ntp: bool = False) -> Dict:
    """Aggregate readiness; the NTP probe is skipped unless ``check_ntp`` is set."""
    result = {"data": check_data_dir(data_dir)}
    result["disk"] = check_disk(data_dir, min_free_gb) if result["data"]["ok"] else {"ok": False}
    if check_ntp:
        result["time"] = check_time_sync()
    result["overall_ok"] = result["data"]["ok"] and result["disk"]["ok"] and (
        result["time"]["overall_ok"] if check_ntp else True
    )
    return result
