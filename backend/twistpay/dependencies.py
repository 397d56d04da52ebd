"""Service wiring for the API layer.

All stateful collaborators are built once from settings and handed to routes
through ``Depends(get_services)``; tests replace them with
``app.dependency_overrides``.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from twistpay.config import Settings, settings
from twistpay.services.code_store import CodeStore
from twistpay.services.crm_sync import CrmClient
from twistpay.services.ingestion import StatusIngestor
from twistpay.services.otp_service import OtpConfirmationCache, OtpService, OtpVerifier
from twistpay.services.payload_index import PayloadIndex
from twistpay.services.record_store import LogSource, RecordStore
from twistpay.services.status_store import StatusStore
from twistpay.services.validation_engine import ValidationEngine


@dataclass
class Services:
    records: RecordStore
    codes: CodeStore
    index: PayloadIndex
    statuses: StatusStore
    otp: OtpService
    crm: CrmClient
    engine: ValidationEngine
    ingestor: StatusIngestor


def build_services(
    cfg: Settings = settings,
    otp_verifier: Optional[OtpVerifier] = None,
    crm: Optional[CrmClient] = None,
) -> Services:
    records = RecordStore(LogSource(cfg.log_path_list))
    codes = CodeStore(cfg.code_db_path)
    index = PayloadIndex(cfg.payload_index_path, codes, records)
    statuses = StatusStore()
    otp = OtpService(
        otp_verifier or OtpVerifier(
            provider=cfg.otp_provider,
            verify_url=cfg.otp_verify_url,
            timeout=cfg.otp_timeout_seconds,
            mock_code=cfg.otp_mock_code,
        ),
        OtpConfirmationCache(ttl=timedelta(minutes=cfg.otp_confirmation_ttl_minutes)),
    )
    crm = crm or CrmClient(base_url=cfg.ac_base_url, api_key=cfg.ac_api_key)
    engine = ValidationEngine(records, codes, otp, statuses, cfg.card_issuer_prefix)
    ingestor = StatusIngestor(records, codes, index, statuses, crm)
    return Services(
        records=records,
        codes=codes,
        index=index,
        statuses=statuses,
        otp=otp,
        crm=crm,
        engine=engine,
        ingestor=ingestor,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services
