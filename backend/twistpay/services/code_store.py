"""TWIST code derivation and the persisted code store.

Each (loan_id, expiration) pair owns a 12-digit secret. The code is derived
deterministically from ``sha256(loan_id|expiration)`` and persisted under the
hex digest of that same seed, so once a code exists it is returned unchanged
forever.

The key embeds the expiration *as submitted*, not its canonical form, so one
logical pair may own several keys. :meth:`CodeStore.lookup` compensates by
retrying every encoding returned by :func:`expiration_variants`.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Optional

from twistpay.services.formats import expiration_variants
from twistpay.services.record_store import now_iso

logger = logging.getLogger(__name__)

CODE_LENGTH = 12
SLICE_START = 4
SLICE_END = 8
LAST_POINTER_KEY = "last"


def _seed(loan_id: str, expiration: str) -> str:
    return f"{str(loan_id).strip()}|{str(expiration).strip()}"


def code_key(loan_id: str, expiration: str) -> str:
    return hashlib.sha256(_seed(loan_id, expiration).encode("utf-8")).hexdigest()


def derive_code(loan_id: str, expiration: str) -> str:
    """Map digest bytes to decimal digits until 12 are produced."""
    digest = hashlib.sha256(_seed(loan_id, expiration).encode("utf-8")).digest()
    return "".join(str(b % 10) for b in digest[:CODE_LENGTH])


def verification_slice(code: Optional[str]) -> Optional[str]:
    """The 4-digit TWIST slice (characters 4..7) of a stored code."""
    if not code or len(str(code)) < CODE_LENGTH:
        return None
    return str(code)[SLICE_START:SLICE_END]


class CodeStore:
    """Flat JSON mapping of key -> code, plus a ``last`` pointer."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.error("Failed to read code store %s: %s", self.path, exc)
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.error("code store parse error (%s): %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to write code store %s: %s", self.path, exc)

    def get_or_create(self, loan_id: str, expiration: str) -> Optional[str]:
        """Return the stored code for this exact pair, creating it on first use."""
        if not str(loan_id or "").strip() or not str(expiration or "").strip():
            return None
        key = code_key(loan_id, expiration)
        with self._lock:
            data = self._load()
            code = data.get(key)
            if not isinstance(code, str) or not code:
                code = derive_code(loan_id, expiration)
                data[key] = code
                logger.info("Created verification code for key %s…", key[:12])
            data[LAST_POINTER_KEY] = {"key": key, "code": code, "t": now_iso()}
            self._save(data)
        return code

    def get(self, loan_id: str, expiration: str) -> Optional[str]:
        code = self._load().get(code_key(loan_id, expiration))
        return code if isinstance(code, str) else None

    def lookup(self, loan_id: str, expiration: str) -> Optional[str]:
        """First stored code across all textual variants of the expiration."""
        if not str(loan_id or "").strip():
            return None
        data = self._load()
        for variant in expiration_variants(expiration):
            code = data.get(code_key(loan_id, variant))
            if isinstance(code, str) and len(code) >= CODE_LENGTH:
                return code
        return None

    def latest(self) -> Optional[dict]:
        pointer = self._load().get(LAST_POINTER_KEY)
        if isinstance(pointer, dict) and pointer.get("code"):
            return pointer
        return None
