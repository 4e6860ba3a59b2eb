"""Tests for the Orange Money, MTN MoMo and Wave providers against a mocked HTTP session."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from paieci.core.exceptions import (
    OutOfRangeError,
    ProviderTechnicalError,
    UnsupportedOperationError,
)
from paieci.core.protocols import IPaymentProvider
from paieci.models.payments import PaymentRequest, TransactionState
from paieci.payments.mtn import MTNMoMoProvider
from paieci.payments.orange import OrangeMoneyProvider
from paieci.payments.wave import WaveProvider

T0 = datetime(2024, 2, 1, 10, 0, tzinfo=UTC)


def _response(status: int = 200, body=None, *, malformed: bool = False) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    if malformed:
        resp.json.side_effect = ValueError("Expecting value")
    else:
        resp.json.return_value = body if body is not None else {}
    return resp


def _token(expires_in: int = 3600) -> MagicMock:
    return _response(200, {"access_token": "tok-1", "expires_in": expires_in})


def _request(destination: str = "0707123456", reference: str = "SAL-p1") -> PaymentRequest:
    return PaymentRequest(
        amount=Decimal("150000"), destination=destination,
        recipient_name="Awa Kone", memo="Janvier 2024", internal_reference=reference,
    )


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def clock():
    return _Clock(T0)


@pytest.fixture
def orange(session, clock):
    return OrangeMoneyProvider(api_key="key", api_secret="secret", base_url="https://om.test/",
                               merchant_msisdn="2250700000000", session=session, clock=clock)


@pytest.fixture
def mtn(session, clock):
    return MTNMoMoProvider(api_key="user", api_secret="pass", subscription_key="sub",
                           base_url="https://momo.test", session=session, clock=clock)


@pytest.fixture
def wave(session, clock):
    return WaveProvider(api_key="wave-key", base_url="https://wave.test/v1",
                        callback_base_url="https://app.test", customer_email="rh@acme.ci",
                        session=session, clock=clock)


class TestProtocolConformance:
    def test_all_variants_satisfy_protocol(self, orange, mtn, wave):
        for provider in (orange, mtn, wave):
            assert isinstance(provider, IPaymentProvider)


class TestOrangeMoney:
    def test_payment_uses_bearer_token(self, orange, session):
        session.request.side_effect = [_token(), _response(200, {"transactionId": "OM-42"})]
        result = orange.initiate_payment(_request())

        assert result.success is True
        assert result.status == TransactionState.PENDING
        assert result.transaction_reference == "OM-42"
        token_call, pay_call = session.request.call_args_list
        assert token_call.args == ("POST", "https://om.test/oauth/token")
        assert token_call.kwargs["data"] == {"grant_type": "client_credentials"}
        assert pay_call.args == ("POST", "https://om.test/omcoreapis/1.0.2/mp/pay")
        assert pay_call.kwargs["headers"]["Authorization"] == "Bearer tok-1"
        assert pay_call.kwargs["headers"]["X-Target-Environment"] == "sandbox"
        assert pay_call.kwargs["json"]["customer"] == {"idType": "MSISDN", "id": "2250707123456"}

    def test_token_reused_until_expiry(self, orange, session, clock):
        session.request.side_effect = [
            _token(3600), _response(200, {"transactionId": "A"}),
            _response(200, {"transactionId": "B"}),
            _token(3600), _response(200, {"transactionId": "C"}),
        ]
        orange.initiate_payment(_request(reference="SAL-1"))
        clock.now = T0 + timedelta(minutes=30)
        orange.initiate_payment(_request(reference="SAL-2"))
        clock.now = T0 + timedelta(hours=1)
        orange.initiate_payment(_request(reference="SAL-3"))

        token_calls = [c for c in session.request.call_args_list if c.args[1].endswith("/oauth/token")]
        assert len(token_calls) == 2

    def test_declined_payment_is_not_an_exception(self, orange, session):
        session.request.side_effect = [_token(), _response(400, {"message": "Insufficient funds"})]
        result = orange.initiate_payment(_request())
        assert result.success is False
        assert result.status == TransactionState.FAILED
        assert result.error_message == "Insufficient funds"

    def test_network_failure_is_technical_error(self, orange, session):
        session.request.side_effect = [_token(), requests.ConnectionError("reset")]
        with pytest.raises(ProviderTechnicalError):
            orange.initiate_payment(_request())

    def test_malformed_success_body_is_technical_error(self, orange, session):
        session.request.side_effect = [_token(), _response(200, malformed=True)]
        with pytest.raises(ProviderTechnicalError):
            orange.initiate_payment(_request())

    def test_token_failure_is_technical_error(self, orange, session):
        session.request.side_effect = [_response(401, {"error": "invalid_client"})]
        with pytest.raises(ProviderTechnicalError, match="authentication failed"):
            orange.get_balance()

    def test_transaction_status(self, orange, session):
        session.request.side_effect = [_token(), _response(200, {
            "status": "SUCCESSFUL", "amount": 150000, "fee": "1500",
            "createdAt": "2024-02-01T10:00:00Z", "finishedAt": "2024-02-01T10:01:00Z",
        })]
        status = orange.check_transaction_status("OM-42")
        assert status.status == TransactionState.SUCCESS
        assert status.amount == Decimal("150000")
        assert status.fee == Decimal("1500")
        assert status.completed_at == datetime(2024, 2, 1, 10, 1, tzinfo=UTC)

    def test_numeric_transaction_id_kept_as_text(self, orange, session):
        session.request.side_effect = [_token(), _response(200, {"transactionId": 12345})]
        result = orange.initiate_payment(_request())
        assert result.success is True
        assert result.transaction_reference == "12345"

    def test_numeric_status_maps_to_pending(self, orange, session):
        session.request.side_effect = [_token(), _response(200, {"status": 1})]
        assert orange.check_transaction_status("OM-42").status == TransactionState.PENDING

    def test_unexpected_status_payload_is_technical_error(self, orange, session):
        session.request.side_effect = [_token(), _response(200, {"status": "FAILED", "reason": {"code": 7}})]
        with pytest.raises(ProviderTechnicalError):
            orange.check_transaction_status("OM-42")

    def test_balance(self, orange, session):
        session.request.side_effect = [_token(), _response(200, {"availableBalance": "2500000", "currency": "XOF"})]
        balance = orange.get_balance()
        assert balance.balance == Decimal("2500000")
        assert balance.currency == "XOF"

    @pytest.mark.parametrize("raw,expected", [
        ("successful", TransactionState.SUCCESS),
        ("REJECTED", TransactionState.FAILED),
        ("cancelled", TransactionState.CANCELLED),
        ("INITIATED", TransactionState.PENDING),
        (None, TransactionState.PENDING),
        (1, TransactionState.PENDING),
    ])
    def test_status_mapping(self, raw, expected):
        assert OrangeMoneyProvider.map_status(raw) == expected

    @pytest.mark.parametrize("number,valid", [
        ("0707123456", True),
        ("05 05 12 34 56", True),
        ("+2250707123456", True),
        ("2250507123456", True),
        ("0407123456", False),
        ("070712345", False),
    ])
    def test_phone_validation(self, orange, number, valid):
        assert orange.validate_phone_number(number) is valid

    def test_live_environment_header(self, session, clock):
        provider = OrangeMoneyProvider(api_key="k", api_secret="s", base_url="https://om.test",
                                       live=True, session=session, clock=clock)
        session.request.side_effect = [_token(), _response(200, {"availableBalance": 0})]
        provider.get_balance()
        assert session.request.call_args.kwargs["headers"]["X-Target-Environment"] == "live"


class TestMTNMoMo:
    def test_payment_headers_and_reference(self, mtn, session):
        session.request.side_effect = [_token(), _response(202)]
        result = mtn.initiate_payment(_request("0505123456"))

        pay_call = session.request.call_args_list[1]
        headers = pay_call.kwargs["headers"]
        assert headers["Ocp-Apim-Subscription-Key"] == "sub"
        assert headers["X-Reference-Id"] == MTNMoMoProvider.reference_id("SAL-p1")
        assert pay_call.kwargs["json"]["amount"] == "150000"
        assert pay_call.kwargs["json"]["externalId"] == "SAL-p1"
        assert result.success is True
        assert result.transaction_reference == headers["X-Reference-Id"]

    def test_same_internal_reference_same_reference_id(self):
        assert MTNMoMoProvider.reference_id("SAL-p1") == MTNMoMoProvider.reference_id("SAL-p1")
        assert MTNMoMoProvider.reference_id("SAL-p1") != MTNMoMoProvider.reference_id("SAL-p2")

    def test_token_request_carries_subscription_key(self, mtn, session):
        session.request.side_effect = [_token(), _response(202)]
        mtn.initiate_payment(_request())
        token_call = session.request.call_args_list[0]
        assert token_call.args == ("POST", "https://momo.test/collection/token/")
        assert token_call.kwargs["auth"] == ("user", "pass")
        assert token_call.kwargs["headers"]["Ocp-Apim-Subscription-Key"] == "sub"

    def test_any_2xx_accepted(self, mtn, session):
        session.request.side_effect = [_token(), _response(201)]
        result = mtn.initiate_payment(_request("0505123456"))
        assert result.success is True
        assert result.status == TransactionState.PENDING

    def test_declined_with_empty_body(self, mtn, session):
        session.request.side_effect = [_token(), _response(409, malformed=True)]
        result = mtn.initiate_payment(_request())
        assert result.success is False
        assert result.error_message == "MTN Mobile Money payment failed"

    def test_status_with_reason_object(self, mtn, session):
        session.request.side_effect = [_token(), _response(200, {
            "status": "FAILED", "amount": "1000", "reason": {"code": "PAYER_NOT_FOUND",
                                                             "message": "Payer not found"},
        })]
        status = mtn.check_transaction_status("ref-1")
        assert status.status == TransactionState.FAILED
        assert status.error_message == "Payer not found"
        assert status.fee == Decimal("0")

    @pytest.mark.parametrize("number,valid", [
        ("0505123456", False),
        ("0404123456", True),
        ("0606123456", True),
        ("+2250606123456", True),
        ("0707123456", False),
    ])
    def test_phone_validation(self, mtn, number, valid):
        assert mtn.validate_phone_number(number) is valid


class TestWave:
    def test_checkout_session(self, wave, session):
        session.request.side_effect = [_response(200, {
            "id": "cos-123", "wave_launch_url": "https://pay.wave.com/c/cos-123",
        })]
        result = wave.initiate_payment(_request("01 02 03 04 05"))

        call = session.request.call_args
        assert call.args == ("POST", "https://wave.test/v1/checkout/sessions")
        assert call.kwargs["headers"] == {"Authorization": "Bearer wave-key"}
        payload = call.kwargs["json"]
        assert payload["customer_phone"] == "+2250102030405"
        assert payload["customer_first_name"] == "Awa"
        assert payload["customer_last_name"] == "Kone"
        assert payload["success_url"].startswith("https://app.test/paiements/succes")
        assert result.transaction_reference == "cos-123"
        assert result.metadata["wave_launch_url"] == "https://pay.wave.com/c/cos-123"

    def test_balance_unsupported(self, wave):
        with pytest.raises(UnsupportedOperationError):
            wave.get_balance()

    def test_session_without_id_is_technical_error(self, wave, session):
        session.request.side_effect = [_response(200, {"status": "open"})]
        with pytest.raises(ProviderTechnicalError):
            wave.initiate_payment(_request())

    def test_numeric_session_id_kept_as_text(self, wave, session):
        session.request.side_effect = [_response(200, {"id": 987})]
        assert wave.initiate_payment(_request()).transaction_reference == "987"

    def test_status_complete(self, wave, session):
        session.request.side_effect = [_response(200, {
            "payment_status": "complete", "amount": "150000",
            "created_at": "2024-02-01T10:00:00+00:00",
        })]
        status = wave.check_transaction_status("cos-123")
        assert status.status == TransactionState.SUCCESS
        assert status.initiated_at == T0

    def test_timeout_is_technical_error(self, wave, session):
        session.request.side_effect = requests.Timeout("read timeout")
        with pytest.raises(ProviderTechnicalError):
            wave.check_transaction_status("cos-123")

    @pytest.mark.parametrize("number,valid", [
        ("12345678", True),
        ("0102030405", True),
        ("+2250102030405", True),
        ("1234567", False),
        ("01020304050", False),
    ])
    def test_phone_validation(self, wave, number, valid):
        assert wave.validate_phone_number(number) is valid


class TestFeesAndLimits:
    @pytest.mark.parametrize("amount,fee", [
        ("100", "0"), ("1000", "0"), ("2500", "25"), ("5000", "50"),
        ("10000", "100"), ("10001", "200"), ("50000", "1000"), ("1000000", "20000"),
    ])
    def test_orange_fee_schedule(self, orange, amount, fee):
        assert orange.calculate_fee(Decimal(amount)) == Decimal(fee)

    @pytest.mark.parametrize("amount,fee", [
        ("1000", "0"), ("2000", "30"), ("4000", "60"), ("9000", "120"),
        ("12000", "300"), ("10001", "250"), ("100000", "2500"),
    ])
    def test_mtn_fee_schedule(self, mtn, amount, fee):
        assert mtn.calculate_fee(Decimal(amount)) == Decimal(fee)

    def test_wave_is_free(self, wave):
        assert wave.calculate_fee(Decimal("4500000")) == Decimal("0")

    @pytest.mark.parametrize("amount", ["99", "1000001"])
    def test_orange_bounds(self, orange, amount):
        with pytest.raises(OutOfRangeError) as exc_info:
            orange.calculate_fee(Decimal(amount))
        assert exc_info.value.minimum == Decimal("100")
        assert exc_info.value.maximum == Decimal("1000000")

    def test_wave_accepts_up_to_five_million(self, wave):
        wave.check_amount(Decimal("5000000"))
        with pytest.raises(OutOfRangeError):
            wave.check_amount(Decimal("5000001"))
