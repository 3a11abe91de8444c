"""
Unit Tests for PayGate PayWeb3 Checksums

Tests paycore.gateways.paygate:
- Official PayWeb3 initiate checksum example
- Reply checksum MD5(PAYGATE_ID + PAY_REQUEST_ID + REFERENCE + key)
- Reply parsing and verification reasons
- Initiate state machine transitions
- Legacy paypage signatures
"""

from datetime import datetime

import pytest

from paycore.config import PayGateConfig
from paycore.errors import (
    DigestConfigError,
    InvalidStateTransition,
    MissingRequiredField,
    PaymentConfigurationError,
)
from paycore.gateways.paygate import (
    PAYGATE_INITIATE_ORDER,
    PAYGATE_REPLY_ORDER,
    InitiateAttempt,
    InitiateState,
    build_initiate_checksum,
    build_initiate_fields,
    build_initiate_reply_checksum,
    build_paypage_request,
    build_paypage_signature,
    build_process_fields,
    is_paid_notify,
    parse_reply,
    verify_initiate_reply,
)


OFFICIAL_FIELDS = {
    "PAYGATE_ID": "10011072130",
    "REFERENCE": "pgtest_123456789",
    "AMOUNT": "3299",
    "CURRENCY": "ZAR",
    "RETURN_URL": "https://my.return.url/page",
    "TRANSACTION_DATE": "2018-01-01 12:00:00",
    "LOCALE": "en-za",
    "COUNTRY": "ZAF",
    "EMAIL": "customer@paygate.co.za",
}
OFFICIAL_KEY = "secret"
OFFICIAL_CHECKSUM = "59229d9c6cb336ae4bd287c87e6f0220"

REPLY = {
    "PAYGATE_ID": "10011072130",
    "PAY_REQUEST_ID": "PR-1",
    "REFERENCE": "INV-1001",
}
REPLY_CHECKSUM = "5e74a696c70ee322f494a0724c1eea69"


@pytest.fixture
def paygate_config() -> PayGateConfig:
    return PayGateConfig(
        paygate_id="10011072130",
        encryption_key=OFFICIAL_KEY,
        return_url="https://my.return.url/page",
    )


class TestInitiateChecksum:

    def test_orders(self) -> None:
        assert len(PAYGATE_INITIATE_ORDER) == 10
        assert PAYGATE_REPLY_ORDER.names == ("PAYGATE_ID", "PAY_REQUEST_ID", "REFERENCE")

    def test_official_example(self) -> None:
        assert build_initiate_checksum(OFFICIAL_FIELDS, OFFICIAL_KEY) == OFFICIAL_CHECKSUM

    def test_missing_and_empty_are_equivalent(self) -> None:
        with_empty = dict(OFFICIAL_FIELDS, NOTIFY_URL="")
        assert build_initiate_checksum(with_empty, OFFICIAL_KEY) == OFFICIAL_CHECKSUM

    def test_fields_are_built_to_official_example(self, paygate_config: PayGateConfig) -> None:
        fields = build_initiate_fields(
            paygate_config,
            "pgtest_123456789",
            "32.99",
            "customer@paygate.co.za",
            transaction_date=datetime(2018, 1, 1, 12, 0, 0),
        )
        assert fields["AMOUNT"] == "3299"
        assert fields["TRANSACTION_DATE"] == "2018-01-01 12:00:00"
        assert fields["NOTIFY_URL"] == ""
        assert build_initiate_checksum(fields, OFFICIAL_KEY) == OFFICIAL_CHECKSUM

    def test_currency_override(self, paygate_config: PayGateConfig) -> None:
        fields = build_initiate_fields(paygate_config, "R1", 10, "a@b.co", currency="USD")
        assert fields["CURRENCY"] == "USD"

    @pytest.mark.parametrize("reference,email,missing", [
        (None, "a@b.co", "REFERENCE"),
        ("", "a@b.co", "REFERENCE"),
        ("R1", None, "EMAIL"),
        ("R1", "  ", "EMAIL"),
    ])
    def test_missing_required(self, paygate_config: PayGateConfig, reference, email, missing) -> None:
        with pytest.raises(MissingRequiredField) as exc_info:
            build_initiate_fields(paygate_config, reference, 10, email)
        assert exc_info.value.field_name == missing


class TestReplyChecksum:

    def test_three_field_reply_checksum(self) -> None:
        reply = {"PAYGATE_ID": "X", "PAY_REQUEST_ID": "Y", "REFERENCE": "Z"}
        assert build_initiate_reply_checksum(reply, "K") == "8e7589a1b6aa8ac82c794a757f119bc3"

    def test_realistic_reply_checksum(self) -> None:
        assert build_initiate_reply_checksum(REPLY, OFFICIAL_KEY) == REPLY_CHECKSUM

    def test_parse_reply(self) -> None:
        body = "PAYGATE_ID=10011072130&PAY_REQUEST_ID=PR-1&REFERENCE=INV-1001&CHECKSUM=abc&EMPTY="
        assert parse_reply(body) == dict(REPLY, CHECKSUM="abc", EMPTY="")

    def test_parse_empty_reply(self) -> None:
        assert parse_reply("") == {}
        assert parse_reply(None) == {}

    def test_verified_reply(self) -> None:
        result = verify_initiate_reply(dict(REPLY, CHECKSUM=REPLY_CHECKSUM.upper()), OFFICIAL_KEY)
        assert result.verified is True

    def test_checksum_mismatch_reason(self) -> None:
        result = verify_initiate_reply(dict(REPLY, CHECKSUM="0" * 32), OFFICIAL_KEY)
        assert result.verified is False
        assert result.reason == "reply checksum mismatch"

    def test_missing_checksum_is_mismatch(self) -> None:
        assert verify_initiate_reply(dict(REPLY), OFFICIAL_KEY).reason == "reply checksum mismatch"

    def test_error_reply_reason(self) -> None:
        result = verify_initiate_reply({"ERROR": "DATA_CHK"}, OFFICIAL_KEY)
        assert result.verified is False
        assert result.reason == "DATA_CHK"

    def test_process_fields(self) -> None:
        assert build_process_fields(REPLY, OFFICIAL_KEY) == {
            "PAY_REQUEST_ID": "PR-1",
            "CHECKSUM": REPLY_CHECKSUM,
        }

    @pytest.mark.parametrize("status,paid", [("1", True), (" 1 ", True), ("2", False), ("", False)])
    def test_is_paid_notify(self, status: str, paid: bool) -> None:
        assert is_paid_notify({"TRANSACTION_STATUS": status}) is paid

    def test_is_paid_notify_without_status(self) -> None:
        assert is_paid_notify({}) is False


class TestInitiateStateMachine:

    def test_happy_path(self) -> None:
        attempt = InitiateAttempt(variant="standard")
        assert attempt.state is InitiateState.BUILDING
        attempt.transition(InitiateState.SUBMITTED)
        attempt.transition(InitiateState.VERIFIED)
        assert attempt.state is InitiateState.VERIFIED
        assert attempt.reason is None

    def test_rejection_keeps_reason(self) -> None:
        attempt = InitiateAttempt(variant="standard")
        attempt.transition(InitiateState.SUBMITTED)
        attempt.transition(InitiateState.REJECTED, "DATA_CHK")
        assert attempt.to_dict()["state"] == "REJECTED"
        assert attempt.to_dict()["reason"] == "DATA_CHK"

    def test_cannot_skip_submission(self) -> None:
        attempt = InitiateAttempt(variant="standard")
        with pytest.raises(InvalidStateTransition):
            attempt.transition(InitiateState.VERIFIED)

    @pytest.mark.parametrize("terminal", [InitiateState.VERIFIED, InitiateState.REJECTED])
    def test_terminal_states_are_final(self, terminal: InitiateState) -> None:
        attempt = InitiateAttempt(variant="standard")
        attempt.transition(InitiateState.SUBMITTED)
        attempt.transition(terminal)
        with pytest.raises(InvalidStateTransition):
            attempt.transition(InitiateState.SUBMITTED)


class TestPaypageSignature:

    PARAMS = {
        "PAYGATE_ID": "10011072130",
        "REFERENCE": "INV-1001",
        "AMOUNT": "3299",
        "CURRENCY": "ZAR",
        "RETURN_URL": "https://shop.example.com/return",
        "NOTIFY_URL": "https://shop.example.com/notify",
        "DESCRIPTION": "Order 1001",
        "TIMESTAMP": "1700000000000",
    }
    HMAC_SIGNATURE = "24c5d8a760f2a2336b47695ee7a6fd3417d393ce7469d57ff73b391877a953f7"
    MD5_SIGNATURE = "c8b4f6f0d61326191bc9b18873e03885"

    def test_hmac_sha256_default(self) -> None:
        assert build_paypage_signature(self.PARAMS, "secret") == self.HMAC_SIGNATURE

    def test_md5(self) -> None:
        assert build_paypage_signature(self.PARAMS, "secret", "md5") == self.MD5_SIGNATURE

    def test_sha512_not_supported(self) -> None:
        with pytest.raises(DigestConfigError):
            build_paypage_signature(self.PARAMS, "secret", "sha512")

    def test_request_builder(self) -> None:
        config = PayGateConfig(
            paygate_id="10011072130",
            encryption_key="secret",
            return_url="https://shop.example.com/return",
            notify_url="https://shop.example.com/notify",
        )
        request = build_paypage_request(
            config,
            "INV-1001",
            "32.99",
            description="Order 1001",
            timestamp_ms=1700000000000,
        )
        assert request.fields == self.PARAMS
        assert request.signature == self.HMAC_SIGNATURE
        assert request.signature_method == "HMAC-SHA256"
        assert request.to_dict()["endpoint"] == "https://secure.paygate.co.za/paypage"

    def test_request_builder_md5(self) -> None:
        config = PayGateConfig(
            paygate_id="10011072130",
            encryption_key="secret",
            return_url="https://shop.example.com/return",
            notify_url="https://shop.example.com/notify",
            signature_type="md5",
        )
        request = build_paypage_request(
            config, "INV-1001", "32.99", description="Order 1001", timestamp_ms=1700000000000
        )
        assert request.signature == self.MD5_SIGNATURE
        assert request.signature_method == "MD5"

    def test_request_builder_requires_credentials(self) -> None:
        with pytest.raises(PaymentConfigurationError):
            build_paypage_request(PayGateConfig(), "INV-1", 10)
