"""Store-status ingestion: the side effects of a payment processor callback."""

import logging
from typing import Any

from starlette.concurrency import run_in_threadpool

from twistpay.services.code_store import CodeStore
from twistpay.services.crm_sync import CrmClient
from twistpay.services.error_logger import log_error
from twistpay.services.formats import last10, phone_values
from twistpay.services.payload_index import PayloadIndex
from twistpay.services.record_store import RecordStore
from twistpay.services.status_store import StatusStore, TransactionStatus

logger = logging.getLogger(__name__)

STORE_STATUS_EVENT = "store-status"


class StatusIngestor:
    def __init__(
        self,
        records: RecordStore,
        codes: CodeStore,
        index: PayloadIndex,
        statuses: StatusStore,
        crm: CrmClient,
    ):
        self.records = records
        self.codes = codes
        self.index = index
        self.statuses = statuses
        self.crm = crm

    async def ingest(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Record one store-status event.

        Persistence problems are logged and do not fail the call; the
        in-memory status is updated first so polling sees it immediately.
        """
        transaction_id = str(payload.get("transaction_id") or "").strip()
        status = TransactionStatus(str(payload.get("status")).strip().lower())
        phones = phone_values(payload)
        phone_last10 = last10(phones[0]) if phones else ""

        applied = self.statuses.set_status(transaction_id, status, details=payload)

        loan_id = str(payload.get("loan_id") or "").strip()
        expiration = str(payload.get("contract_expiration") or payload.get("expiration") or "").strip()
        code_ready = False
        if loan_id and expiration:
            code = await run_in_threadpool(self.codes.get_or_create, loan_id, expiration)
            code_ready = code is not None

        entry = payload if applied else {**payload, "status_ignored": True}
        if not await run_in_threadpool(self.records.append, STORE_STATUS_EVENT, entry):
            logger.error("store-status for %s kept in memory only: log not writable", transaction_id)

        try:
            await run_in_threadpool(self.index.upsert, payload)
        except Exception as exc:
            await log_error(exc, module=__name__, function_name="ingest")

        crm_result = await self.crm.sync_payload(payload)

        return {
            "success": True,
            "transaction_id": transaction_id,
            "status": (self.statuses.status_of(transaction_id) or status).value,
            "status_applied": applied,
            "phoneLast10": phone_last10,
            "code_ready": code_ready,
            "crm": crm_result,
        }
