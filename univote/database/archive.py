# univote/database/archive.py

# Finalized elections are frozen into one JSON file each, keyed by the archive
# timestamp, plus an index file listing them for the history view.

import os
import re
from typing import Optional

from univote.database.json_store import JsonFileStore

ARCHIVE_ID_PATTERN = re.compile(r"^election-\d+$")
INDEX_FILENAME = "election-index.json"


class ArchiveStore:
    def __init__(self, archive_dir: str):
        self.archive_dir = archive_dir
        os.makedirs(archive_dir, exist_ok=True)
        self.index = JsonFileStore(
            os.path.join(archive_dir, INDEX_FILENAME),
            lambda: {"elections": [], "lastUpdated": None},
        )

    def _archive_path(self, archive_id: str) -> str:
        return os.path.join(self.archive_dir, f"{archive_id}.json")

    def write(self, archive: dict, archived_at: int) -> dict:
        """Persist an archive under a fresh id and register it in the index.

        Ids are ``election-<archived_at>``; the millisecond is bumped until the id
        is free. Allocation, file write and index update share the index lock.
        """
        with self.index.lock:
            while os.path.exists(self._archive_path(f"election-{archived_at}")):
                archived_at += 1
            archive = dict(archive, id=f"election-{archived_at}", archivedAt=archived_at)
            JsonFileStore(self._archive_path(archive["id"]), dict).save(archive)
            self._register(archive)
        return archive

    def _register(self, archive: dict) -> None:
        with self.index.transaction() as index:
            index.setdefault("elections", []).append({
                "id": archive["id"],
                "title": archive["title"],
                "archivedAt": archive["archivedAt"],
                "totalVotes": archive["stats"]["totalVotes"],
                "winner": archive["stats"]["winnerName"],
            })
            index["lastUpdated"] = archive["archivedAt"]

    def history(self) -> dict:
        index = self.index.load()
        elections = sorted(index.get("elections", []), key=lambda e: e.get("archivedAt", 0), reverse=True)
        return {"elections": elections, "lastUpdated": index.get("lastUpdated")}

    def get(self, archive_id: str) -> Optional[dict]:
        if not ARCHIVE_ID_PATTERN.match(archive_id or ""):
            return None
        path = self._archive_path(archive_id)
        if not os.path.exists(path):
            return None
        return JsonFileStore(path, dict).load()
