"""Tests for response normalization and expiry resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from app.engine.normalizer import NormalizationContext, normalize, parse_timestamp, resolve_expiry
from app.models.enums import ChannelArchetype
from app.models.payment import FixedAccount
from conftest import NOW, make_request

FALLBACK = NOW + timedelta(hours=24)


def context(channel_id: str = "qris", amount: int = 50_000) -> NormalizationContext:
    return NormalizationContext(
        request=make_request(channel_id, amount),
        channel_id=channel_id,
        requested_at=NOW,
        requested_expiry=FALLBACK,
    )


class TestExpiryResolution:
    def test_fallback_when_nothing_found(self):
        assert resolve_expiry({"id": "pr_1"}, NOW, FALLBACK) == FALLBACK

    def test_top_level_wins_over_actions_and_metadata(self):
        raw = {
            "expires_at": "2025-01-15T12:00:00Z",
            "actions": [{"expires_at": "2025-01-15T13:00:00Z"}],
            "metadata": {"expires_at": "2025-01-15T14:00:00Z"},
        }
        assert resolve_expiry(raw, NOW, FALLBACK) == datetime(2025, 1, 15, 12, tzinfo=timezone.utc)

    def test_first_action_wins_over_metadata(self):
        raw = {
            "actions": [{"expiry_time": "2025-01-15T13:00:00Z"}, {"expires_at": "2025-01-15T18:00:00Z"}],
            "metadata": {"expires_at": "2025-01-15T14:00:00Z"},
        }
        assert resolve_expiry(raw, NOW, FALLBACK) == datetime(2025, 1, 15, 13, tzinfo=timezone.utc)

    def test_field_name_order_within_a_level(self):
        raw = {"due_date": "2025-01-20T00:00:00Z", "expiration_date": "2025-01-17T00:00:00Z"}
        assert resolve_expiry(raw, NOW, FALLBACK) == datetime(2025, 1, 17, tzinfo=timezone.utc)

    def test_metadata_echo(self):
        raw = {"metadata": {"expires_at": "2025-01-16T10:00:00.000Z"}}
        assert resolve_expiry(raw, NOW, FALLBACK) == FALLBACK

    def test_past_and_unparseable_values_skipped(self):
        raw = {
            "expires_at": "2024-12-31T00:00:00Z",
            "expiry_date": "tomorrow",
            "valid_until": "2025-01-15T11:00:00Z",
        }
        assert resolve_expiry(raw, NOW, FALLBACK) == datetime(2025, 1, 15, 11, tzinfo=timezone.utc)

    def test_epoch_seconds_and_milliseconds(self):
        later = NOW + timedelta(hours=3)
        assert parse_timestamp(int(later.timestamp())) == later
        assert parse_timestamp(int(later.timestamp() * 1000)) == later

    def test_naive_iso_is_utc(self):
        assert parse_timestamp("2025-01-15T12:00:00") == datetime(2025, 1, 15, 12, tzinfo=timezone.utc)


class TestWalletOrQr:
    def test_present_action_becomes_qr_payload(self):
        raw = {
            "id": "pr_1",
            "status": "REQUIRES_ACTION",
            "amount": 50_000,
            "currency": "IDR",
            "actions": [{"type": "PRESENT_TO_CUSTOMER", "value": "00020101021226"}],
        }
        result = normalize(ChannelArchetype.WALLET_OR_QR, raw, context())
        assert result.id == "pr_1"
        assert result.qr_payload == "00020101021226"
        assert result.redirect_url is None
        assert result.status == "REQUIRES_ACTION"
        assert result.expiry_time == FALLBACK

    def test_redirect_action(self):
        raw = {"id": "pr_2", "actions": [{"action": "AUTH", "url": "https://pay.test/auth"}]}
        result = normalize(ChannelArchetype.WALLET_OR_QR, raw, context("astrapay", 20_000))
        assert result.redirect_url == "https://pay.test/auth"
        assert result.qr_payload is None

    def test_unknown_action_dropped(self):
        raw = {"id": "pr_3", "actions": [{"type": "SOMETHING_NEW", "value": "x"}]}
        result = normalize(ChannelArchetype.WALLET_OR_QR, raw, context())
        assert result.qr_payload is None
        assert result.redirect_url is None

    def test_qr_string_from_channel_properties(self):
        raw = {
            "id": "pr_4",
            "payment_method": {"qr_code": {"channel_properties": {"qr_string": "000201XYZ"}}},
        }
        result = normalize(ChannelArchetype.WALLET_OR_QR, raw, context())
        assert result.qr_payload == "000201XYZ"

    def test_caller_values_win_over_echo(self):
        raw = {"id": "pr_5", "reference_id": "something-else", "channel_code": "QRIS"}
        result = normalize(ChannelArchetype.OTHER, raw, context())
        assert result.external_id == "ord-1"
        assert result.channel_id == "qris"
        assert result.status == "PENDING"
        assert result.amount == 50_000
        assert result.currency == "IDR"

    def test_missing_id_raises(self):
        with pytest.raises(ValueError):
            normalize(ChannelArchetype.WALLET_OR_QR, {"status": "PENDING"}, context())


class TestOverTheCounter:
    def test_payment_request_id_preferred(self):
        raw = {
            "payment_request_id": "pr-otc-1",
            "id": "other",
            "request_amount": 75_000,
            "actions": [{"descriptor": "PAYMENT_CODE", "value": "TEST123456"}],
        }
        result = normalize(ChannelArchetype.OVER_THE_COUNTER, raw, context("indomaret", 75_000))
        assert result.id == "pr-otc-1"
        assert result.amount == 75_000
        assert result.retail_payment_code == "TEST123456"

    def test_payment_code_from_channel_properties(self):
        raw = {"payment_request_id": "pr-otc-2", "channel_properties": {"payment_code": "ABC999"}}
        result = normalize(ChannelArchetype.OVER_THE_COUNTER, raw, context("indomaret", 75_000))
        assert result.retail_payment_code == "ABC999"


class TestBankTransfer:
    def test_fixed_account_wins(self):
        account = FixedAccount(
            gateway_account_id="va_1",
            bank_code="BRI",
            account_number="8808123",
            account_holder_name="Budi Santoso",
            expected_amount=100_000,
        )
        raw = {
            "id": "inv_1",
            "status": "PENDING",
            "amount": 100_000,
            "invoice_url": "https://checkout.test/inv_1",
            "account_number": "0000",
        }
        result = normalize(ChannelArchetype.BANK_TRANSFER, raw, context("bri", 100_000), account)
        assert result.account_number == "8808123"
        assert result.bank_code == "BRI"
        assert result.account_holder_name == "Budi Santoso"
        assert result.redirect_url == "https://checkout.test/inv_1"

        response = result.to_response()
        assert response["virtual_account_number"] == "8808123"
        assert response["invoice_url"] == "https://checkout.test/inv_1"
        assert "qr_string" not in response
