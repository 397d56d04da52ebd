"""ActiveCampaign contact sync for store-status events.

Selected payload fields are written to fixed custom-field ids. The sync is
best-effort: every function here returns a result dict and never raises, so
CRM failures cannot break the calling flow.
"""

import logging
from typing import Any, Optional

import httpx

from twistpay.config import settings

logger = logging.getLogger(__name__)

# payload field -> ActiveCampaign custom field id
AC_FIELD_IDS: dict[str, str] = {
    "available_credit": "78",
    "loan_id": "80",
    "limit": "82",
    "product_code": "84",
    "state": "85",
    "contract_expiration": "86",
    "product_description": "88",
}
AC_ACTIVE_FLAG_FIELD_ID = "79"

_CONTACT_ID_FIELDS = ("active_campaign_contact_id", "ac_contact_id", "contact_id")
_EMAIL_FIELDS = ("email", "contact_email")


def build_field_values(payload: dict) -> list[dict[str, str]]:
    """Map a store-status payload onto ActiveCampaign field values."""
    fields = [
        {"field": field_id, "value": str(payload[name])}
        for name, field_id in AC_FIELD_IDS.items()
        if payload.get(name) is not None and payload.get(name) != ""
    ]
    if str(payload.get("state") or "").strip().lower() == "active":
        fields.append({"field": AC_ACTIVE_FLAG_FIELD_ID, "value": "true"})
    return fields


def _first(payload: dict, names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = payload.get(name)
        if value not in (None, ""):
            return str(value).strip()
    return None


class CrmClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
    ):
        self.base_url = (base_url if base_url is not None else settings.ac_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.ac_api_key
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Api-Token": self.api_key}

    async def sync_payload(self, payload: dict) -> dict[str, Any]:
        """Push the CRM-relevant fields of ``payload`` to ActiveCampaign."""
        if not self.configured:
            return {"skipped": True, "reason": "AC not configured"}

        fields = build_field_values(payload)
        if not fields:
            return {"skipped": True, "reason": "no fields to update"}

        contact_id = _first(payload, _CONTACT_ID_FIELDS)
        email = _first(payload, _EMAIL_FIELDS)
        if not contact_id and not email:
            return {"skipped": True, "reason": "no contactId or email"}

        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                if contact_id:
                    results = []
                    for f in fields:
                        response = await client.post(
                            "/api/3/fieldValues",
                            headers=self._headers(),
                            json={"fieldValue": {**f, "contact": contact_id}},
                        )
                        results.append({
                            "field": f["field"],
                            "ok": response.status_code < 400,
                            "status": response.status_code,
                        })
                    ok = all(r["ok"] for r in results)
                    if not ok:
                        logger.warning("ActiveCampaign fieldValues partially failed for contact %s", contact_id)
                    return {"ok": ok, "mode": "fieldValues", "results": results}

                response = await client.post(
                    "/api/3/contact/sync",
                    headers=self._headers(),
                    json={"contact": {"email": email, "fieldValues": fields}},
                )
                if response.status_code >= 400:
                    logger.error("ActiveCampaign contact/sync error %s", response.status_code)
                return {
                    "ok": response.status_code < 400,
                    "status": response.status_code,
                    "mode": "contact/sync",
                }
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("ActiveCampaign update error: %s", exc)
            return {"ok": False, "error": str(exc)}
