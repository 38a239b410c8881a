# univote/database/json_store.py

# Whole-file JSON persistence. Each store serialises load -> mutate -> save behind
# its own re-entrant lock so concurrent requests cannot lose updates, and every
# save goes through a temp file + os.replace so readers never see a partial file.

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List

from univote.database.models import (
    default_election_data,
    normalize_election_data,
    normalize_user,
)
from univote.errors import InternalError

logger = logging.getLogger(__name__)


class JsonFileStore:
    def __init__(self, path: str, default_factory: Callable[[], Any]):
        self.path = path
        self.default_factory = default_factory
        self.lock = threading.RLock()
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)

    def _read(self):
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return self.default_factory()
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read %s: %s", self.path, e)
            raise InternalError("Failed to load stored data.") from e

    def _write(self, data) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to write %s: %s", self.path, e)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise InternalError("Failed to save data.") from e

    def normalize(self, raw):
        return raw

    def serialize(self, data):
        return data

    def load(self):
        """Read and normalise the file.

        Defaults that normalisation fills in (fresh ids, timestamps) are written
        back once so later loads see the same values.
        """
        with self.lock:
            raw = self._read()
            data = self.normalize(raw)
            if os.path.exists(self.path) and self.serialize(data) != raw:
                logger.info("Filled missing fields in %s", self.path)
                self._write(self.serialize(data))
            return data

    def save(self, data) -> None:
        with self.lock:
            self._write(self.serialize(data))

    @contextmanager
    def transaction(self):
        """Hold the store lock across a read-modify-write cycle.

        The data is saved when the block exits normally and discarded when it raises.
        Callers that must persist a change and still fail (lazy phase expiry) call
        ``save`` themselves before raising.
        """
        with self.lock:
            data = self.load()
            yield data
            self.save(data)


class ElectionStore(JsonFileStore):
    """Singleton election record together with positions, candidates and the vote log."""

    def __init__(self, path: str):
        super().__init__(path, default_election_data)

    def normalize(self, raw) -> Dict[str, Any]:
        return normalize_election_data(raw)


class UserStore(JsonFileStore):
    """User accounts, stored as ``{"users": [...]}``."""

    def __init__(self, path: str):
        super().__init__(path, lambda: {"users": []})

    def normalize(self, raw) -> List[Dict[str, Any]]:
        users = raw.get("users") if isinstance(raw, dict) else None
        return [normalize_user(u) for u in (users or [])]

    def serialize(self, users):
        return {"users": users}
