from unittest.mock import MagicMock, patch

import ntplib

from univote.operations import health_monitor
from univote.operations.time_sync import check_time_sync


def test_health_endpoint(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_version_endpoint(client):
    body = client.get("/api/version").get_json()
    assert body["version"] == "1.0.0"
    assert "timestamp" in body


def test_ready_endpoint(client, app):
    app.config["MIN_FREE_DISK_GB"] = 0
    resp = client.get("/ready")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["overall_ok"] is True
    assert body["data"]["ok"] is True
    assert "time" not in body


def test_ready_reports_low_disk(client, app):
    app.config["MIN_FREE_DISK_GB"] = 10 ** 9
    resp = client.get("/ready")
    assert resp.status_code == 503
    assert resp.get_json()["disk"]["ok"] is False


def test_readiness_includes_clock_drift_when_enabled(tmp_path, monkeypatch):
    monkeypatch.setattr(health_monitor, "check_time_sync", lambda: {"overall_ok": False})
    result = health_monitor.check_readiness(str(tmp_path), min_free_gb=0, check_ntp=True)
    assert result["time"] == {"overall_ok": False}
    assert result["overall_ok"] is False


def test_check_data_dir_reports_unwritable_path(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    result = health_monitor.check_data_dir(str(blocker / "data"))
    assert result["ok"] is False
    assert "error" in result


def test_check_time_sync_averages_offsets():
    response = MagicMock(offset=0.2, tx_time=1_700_000_000)
    with patch("univote.operations.time_sync.ntplib.NTPClient") as client_cls:
        client_cls.return_value.request.side_effect = [response, ntplib.NTPException("timeout")]
        result = check_time_sync(servers=["a", "b"])
    assert result["overall_ok"] is True
    assert result["average_offset_s"] == 0.2
    assert [r["status"] for r in result["results"]] == ["ok", "failed"]


def test_check_time_sync_flags_drift():
    response = MagicMock(offset=5.0, tx_time=1_700_000_000)
    with patch("univote.operations.time_sync.ntplib.NTPClient") as client_cls:
        client_cls.return_value.request.return_value = response
        result = check_time_sync(servers=["a"])
    assert result["overall_ok"] is False
    assert result["results"][0]["status"] == "drifted"


def test_check_time_sync_all_servers_down():
    with patch("univote.operations.time_sync.ntplib.NTPClient") as client_cls:
        client_cls.return_value.request.side_effect = OSError("unreachable")
        result = check_time_sync(servers=["a"])
    assert result["overall_ok"] is False
    assert result["average_offset_s"] is None
