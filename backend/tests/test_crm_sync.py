"""Tests for ActiveCampaign field mapping and the best-effort sync client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from twistpay.services.crm_sync import (
    AC_ACTIVE_FLAG_FIELD_ID,
    CrmClient,
    build_field_values,
)


def _response(status_code: int = 200):
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status_code
    return resp


def _client(post):
    client = AsyncMock()
    client.post = post
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestBuildFieldValues:
    def test_maps_known_fields(self, account):
        fields = {f["field"]: f["value"] for f in build_field_values(account)}
        assert fields["78"] == "1500"
        assert fields["80"] == account["loan_id"]
        assert fields["84"] == "TW1"
        assert fields["85"] == "active"
        assert fields["86"] == "03/27"
        assert fields["88"] == "Twist card"
        assert "82" not in fields

    def test_active_flag_only_for_active_state(self, account):
        flags = [f for f in build_field_values(account) if f["field"] == AC_ACTIVE_FLAG_FIELD_ID]
        assert flags == [{"field": "79", "value": "true"}]
        closed = build_field_values({**account, "state": "closed"})
        assert all(f["field"] != AC_ACTIVE_FLAG_FIELD_ID for f in closed)

    def test_empty_values_are_dropped(self):
        assert build_field_values({"loan_id": "", "limit": None}) == []


class TestSyncPayload:
    @pytest.mark.asyncio
    async def test_not_configured(self, account):
        client = CrmClient(base_url="", api_key="")
        assert await client.sync_payload(account) == {"skipped": True, "reason": "AC not configured"}

    @pytest.mark.asyncio
    async def test_nothing_to_update(self):
        client = CrmClient(base_url="https://ac.example", api_key="k")
        result = await client.sync_payload({"transaction_id": "t1", "email": "a@b.co"})
        assert result == {"skipped": True, "reason": "no fields to update"}

    @pytest.mark.asyncio
    async def test_no_contact_target(self, account):
        client = CrmClient(base_url="https://ac.example", api_key="k")
        payload = {k: v for k, v in account.items() if k != "email"}
        result = await client.sync_payload(payload)
        assert result == {"skipped": True, "reason": "no contactId or email"}

    @pytest.mark.asyncio
    async def test_contact_sync_by_email(self, account):
        post = AsyncMock(return_value=_response(200))
        crm = CrmClient(base_url="https://ac.example/", api_key="secret")
        with patch("twistpay.services.crm_sync.httpx.AsyncClient", return_value=_client(post)):
            result = await crm.sync_payload(account)

        assert result == {"ok": True, "status": 200, "mode": "contact/sync"}
        args, kwargs = post.call_args
        assert args[0] == "/api/3/contact/sync"
        assert kwargs["headers"]["Api-Token"] == "secret"
        assert kwargs["json"]["contact"]["email"] == "Jane.Doe@example.com"
        assert {"field": "79", "value": "true"} in kwargs["json"]["contact"]["fieldValues"]

    @pytest.mark.asyncio
    async def test_field_values_by_contact_id(self, account):
        post = AsyncMock(side_effect=[_response(200)] * 6 + [_response(422)])
        crm = CrmClient(base_url="https://ac.example", api_key="secret")
        payload = {**account, "contact_id": "42"}
        with patch("twistpay.services.crm_sync.httpx.AsyncClient", return_value=_client(post)):
            result = await crm.sync_payload(payload)

        assert result["mode"] == "fieldValues"
        assert result["ok"] is False
        assert len(result["results"]) == len(build_field_values(payload))
        args, kwargs = post.call_args_list[0]
        assert args[0] == "/api/3/fieldValues"
        assert kwargs["json"]["fieldValue"]["contact"] == "42"

    @pytest.mark.asyncio
    async def test_transport_error_is_reported(self, account):
        post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        crm = CrmClient(base_url="https://ac.example", api_key="secret")
        with patch("twistpay.services.crm_sync.httpx.AsyncClient", return_value=_client(post)):
            result = await crm.sync_payload(account)
        assert result == {"ok": False, "error": "refused"}

    @pytest.mark.asyncio
    async def test_malformed_base_url_is_reported(self, account):
        crm = CrmClient(base_url="https://ac.example", api_key="secret")
        with patch(
            "twistpay.services.crm_sync.httpx.AsyncClient",
            side_effect=httpx.InvalidURL("Invalid URL component"),
        ):
            result = await crm.sync_payload(account)
        assert result["ok"] is False
        assert "Invalid URL" in result["error"]
