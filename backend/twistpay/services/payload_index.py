"""Derived lookup index over the record store.

The index is a pure cache keyed by ``sha256(loan_id|expiration)``. It can be
thrown away and rebuilt at any time by replaying the log, and the payload it
hands back is always re-resolved from the log itself.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from twistpay.services.code_store import CodeStore, code_key
from twistpay.services.formats import last10, phone_last10_set, phone_values
from twistpay.services.record_store import RecordStore, now_iso

logger = logging.getLogger(__name__)


def _empty_index() -> dict:
    return {"byKey": {}, "byCode": {}, "byPhone": {}, "byEmail": {}}


def _expiration_of(payload: dict) -> str:
    return str(payload.get("contract_expiration") or payload.get("expiration") or "").strip()


def _email_of(payload: dict) -> str:
    return str(payload.get("email") or payload.get("customer_email") or "").strip().lower()


def summarize_record(key: str, rec: Optional[dict]) -> Optional[dict]:
    if not rec:
        return None
    return {
        "key": key,
        "loan_id": rec.get("loan_id"),
        "contract_expiration": rec.get("contract_expiration"),
        "code": rec.get("code"),
        "phones": sorted(rec.get("phones", {})),
        "emails": sorted(rec.get("emails", {})),
        "updatedAt": rec.get("updatedAt"),
    }


class PayloadIndex:
    def __init__(self, path: str | Path, codes: CodeStore, records: RecordStore):
        self.path = Path(path)
        self.codes = codes
        self.records = records
        self._lock = threading.Lock()

    # ── IO ───────────────────────────────────────────────

    def load(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
        except FileNotFoundError:
            data = {}
        except (OSError, ValueError) as exc:
            logger.error("Payload index %s unreadable, starting empty: %s", self.path, exc)
            data = {}
        idx = _empty_index()
        if isinstance(data, dict):
            for table in idx:
                if isinstance(data.get(table), dict):
                    idx[table] = data[table]
        return idx

    def save(self, idx: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(idx, indent=2, default=str), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save payload index %s: %s", self.path, exc)

    # ── Upsert / rebuild ─────────────────────────────────

    def _apply(self, idx: dict, payload: dict) -> Optional[str]:
        loan_id = str(payload.get("loan_id") or "").strip()
        exp = _expiration_of(payload)
        if not loan_id or not exp:
            return None

        key = code_key(loan_id, exp)
        code = self.codes.get_or_create(loan_id, exp)
        phones = phone_last10_set(phone_values(payload))
        email = _email_of(payload)

        rec = idx["byKey"].get(key) or {
            "loan_id": loan_id,
            "contract_expiration": exp,
            "code": code,
            "phones": {},
            "emails": {},
            "lastPayload": None,
            "updatedAt": None,
        }
        for p in phones:
            rec["phones"][p] = True
            keys = idx["byPhone"].setdefault(p, [])
            if key not in keys:
                keys.append(key)
        if email:
            rec["emails"][email] = True
            keys = idx["byEmail"].setdefault(email, [])
            if key not in keys:
                keys.append(key)
        rec["code"] = code
        rec["lastPayload"] = payload
        rec["updatedAt"] = now_iso()

        idx["byKey"][key] = rec
        if code:
            idx["byCode"][code] = key
        return key

    def upsert(self, payload: dict) -> Optional[str]:
        """Merge one payload into the index; returns its key or None."""
        if not isinstance(payload, dict):
            return None
        with self._lock:
            idx = self.load()
            key = self._apply(idx, payload)
            if key:
                self.save(idx)
        return key

    def rebuild_from_log(self) -> dict:
        """Replay every parseable log record, oldest first, into a fresh index."""
        entries = self.records.entries()
        entries.sort(key=lambda e: (e.sort_timestamp, e.sequence))
        with self._lock:
            idx = _empty_index()
            applied = 0
            for entry in entries:
                if self._apply(idx, entry.record):
                    applied += 1
            self.save(idx)
        logger.info("Payload index rebuilt: %d entries replayed, %d keys", applied, len(idx["byKey"]))
        return {"replayed": applied, "keys": len(idx["byKey"])}

    # ── Lookups ──────────────────────────────────────────

    def _summaries(self, idx: dict, keys: list[str]) -> list[dict]:
        return [s for s in (summarize_record(k, idx["byKey"].get(k)) for k in keys) if s]

    def find_by_code(self, code: str) -> list[dict]:
        idx = self.load()
        key = idx["byCode"].get(str(code or "").strip())
        return self._summaries(idx, [key]) if key else []

    def find_by_phone(self, phone: Any) -> list[dict]:
        idx = self.load()
        return self._summaries(idx, idx["byPhone"].get(last10(phone), []))

    def find_by_email(self, email: str) -> list[dict]:
        idx = self.load()
        return self._summaries(idx, idx["byEmail"].get(str(email or "").strip().lower(), []))

    def resolve_payload(self, key: str) -> Optional[dict]:
        """The latest log record belonging to an index key."""
        def _matches(record: dict) -> bool:
            loan_id = str(record.get("loan_id") or "").strip()
            exp = _expiration_of(record)
            return bool(loan_id and exp) and code_key(loan_id, exp) == key

        return self.records.find_latest(_matches)
