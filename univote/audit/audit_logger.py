# univote/audit/audit_logger.py

import base64
import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

logger = logging.getLogger(__name__)

# Append-only audit trail of election and account events. Entries are JSON lines,
# chained by SHA-256 and signed with an Ed25519 key kept next to the log.

KEY_FILENAME = "audit_signing_key.pem"


class AuditLogger:
    def __init__(self, log_dir='logs'):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self.key_file = os.path.join(log_dir, KEY_FILENAME)
        self.previous_hash = None
        self._lock = threading.Lock()

        os.makedirs(log_dir, exist_ok=True)

        self.signing_key = self._load_or_create_key()
        self._load_previous_hash()

    def _load_or_create_key(self):
        if os.path.exists(self.key_file):
            with open(self.key_file, 'rb') as f:
                return serialization.load_pem_private_key(f.read(), password=None)
        key = Ed25519PrivateKey.generate()
        pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption())
        with open(self.key_file, 'wb') as f:
            f.write(pem)
        os.chmod(self.key_file, 0o600)
        return key

    def _load_previous_hash(self):
        if os.path.exists(self.log_file):
            with open(self.log_file, 'r') as f:
                lines = [line for line in f if line.strip()]
            if lines:
                try:
                    self.previous_hash = json.loads(lines[-1]).get('hash')
                except json.JSONDecodeError:
                    logger.warning("Last audit entry is unreadable; starting a new chain")
                    self.previous_hash = None

    def log_event(self, event_type, data, user_id=None):
        """Append an entry; failures are logged and never break the calling request."""
        with self._lock:
            try:
                log_entry = {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "event_type": event_type,
                    "data": data,
                    "user_id": user_id,
                    "previous_hash": self.previous_hash,
                }
                entry_json = json.dumps(log_entry, sort_keys=True)
                entry_hash = hashlib.sha256(entry_json.encode()).hexdigest()
                signature = self.signing_key.sign(entry_json.encode())
                log_entry['hash'] = entry_hash
                log_entry['signature'] = base64.b64encode(signature).decode()

                with open(self.log_file, 'a') as f:
                    f.write(json.dumps(log_entry) + "\n")

                self.previous_hash = entry_hash
            except (OSError, TypeError, ValueError) as e:
                logger.error("Audit log error for %s: %s", event_type, e)

    def read_entries(self, limit=None):
        """Entries newest first; unparsable lines are returned as ``{"raw": line}``."""
        if not os.path.exists(self.log_file):
            return []
        entries = []
        with open(self.log_file, 'r') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    entries.append({'raw': line})
        entries.reverse()
        return entries[:limit] if limit else entries

    def verify_log_integrity(self):
        if not os.path.exists(self.log_file):
            return True
        public_key = self.signing_key.public_key()
        previous_hash = None
        try:
            with open(self.log_file, 'r') as f:
                for line in f:
                    if not line.strip():
                        continue
                    log_entry = json.loads(line)
                    if log_entry.get('previous_hash') != previous_hash:
                        return False
                    entry_copy = dict(log_entry)
                    signature = base64.b64decode(entry_copy.pop('signature'))
                    entry_hash = entry_copy.pop('hash')
                    entry_json = json.dumps(entry_copy, sort_keys=True).encode()
                    if hashlib.sha256(entry_json).hexdigest() != entry_hash:
                        return False
                    public_key.verify(signature, entry_json)
                    previous_hash = entry_hash
        except (InvalidSignature, KeyError, ValueError):
            return False
        return True
