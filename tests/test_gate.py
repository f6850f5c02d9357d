import pytest

from relay.auth.gate import DownloadCredentials, authorize_download
from relay.auth.tokens import sign_claims, sign_short
from relay.services.metadata import TransferMeta

SECRET = b"unit-test-payment-secret-0123456789abcdef"
NOW = 1_700_000_000
TID = "AB3XQ9"


def decide(meta, now=NOW, bypass=("pro",), **creds):
    return authorize_download(TID, meta, DownloadCredentials(**creds), secret=SECRET, bypass_plans=bypass, now=now)


def short(tid=TID, exp=NOW + 3600):
    return sign_short(tid, exp, SECRET)


def claims(tid=TID, exp=NOW + 3600):
    return sign_claims({"id": tid}, exp, SECRET)


def test_open_transfer_needs_no_credentials():
    decision = decide(TransferMeta(id=TID))
    assert decision.allowed is True
    assert decision.via == "open"


def test_paid_transfer_without_token_requires_payment():
    decision = decide(TransferMeta(id=TID, require_paid=True))
    assert decision.allowed is False
    assert decision.error == "payment_required"


def test_paid_transfer_with_fresh_short_token():
    decision = decide(TransferMeta(id=TID, require_paid=True), short_token=short())
    assert decision.allowed is True
    assert decision.via == "short"


def test_short_token_for_another_transfer_is_rejected():
    decision = decide(TransferMeta(id=TID, require_paid=True), short_token=short(tid="ZZZZZZ"))
    assert decision.error == "payment_required"


def test_expired_short_token_is_rejected():
    decision = decide(TransferMeta(id=TID, require_paid=True), short_token=short(exp=NOW - 1))
    assert decision.error == "payment_required"


def test_claims_token_must_name_the_transfer():
    meta = TransferMeta(id=TID, require_paid=True)
    assert decide(meta, claims_token=claims()).via == "claims"
    assert decide(meta, claims_token=claims(tid="ZZZZZZ")).error == "payment_required"


def test_invalid_short_token_falls_through_to_claims_token():
    decision = decide(
        TransferMeta(id=TID, require_paid=True),
        short_token="garbage",
        claims_token=claims(),
    )
    assert decision.allowed is True
    assert decision.via == "claims"


def test_short_token_has_precedence_over_claims_token():
    decision = decide(TransferMeta(id=TID, require_paid=True), short_token=short(), claims_token=claims())
    assert decision.via == "short"


@pytest.mark.parametrize("plan,allowed", [("pro", True), ("free", False), (None, False), ("", False)])
def test_bypass_plan(plan, allowed):
    decision = decide(TransferMeta(id=TID, require_paid=True), plan=plan)
    assert decision.allowed is allowed
    if allowed:
        assert decision.via == "plan"


def test_empty_bypass_list_grants_nothing():
    decision = decide(TransferMeta(id=TID, require_paid=True), bypass=(), plan="pro")
    assert decision.error == "payment_required"


@pytest.mark.parametrize("pin", [None, "", "0000", "12345", " 1234"])
def test_wrong_or_missing_pin(pin):
    decision = decide(TransferMeta(id=TID, pin="1234"), pin=pin)
    assert decision.allowed is False
    assert decision.error == "pin_required"


def test_pin_is_checked_before_payment():
    meta = TransferMeta(id=TID, pin="1234", require_paid=True)
    decision = decide(meta, pin="9999", short_token=short(), claims_token=claims(), plan="pro")
    assert decision.error == "pin_required"


def test_correct_pin_then_payment_rules_apply():
    meta = TransferMeta(id=TID, pin="1234", require_paid=True)
    assert decide(meta, pin="1234").error == "payment_required"
    assert decide(meta, pin="1234", short_token=short()).allowed is True


def test_pin_comparison_is_case_sensitive():
    assert decide(TransferMeta(id=TID, pin="abcd"), pin="ABCD").error == "pin_required"
    assert decide(TransferMeta(id=TID, pin="abcd"), pin="abcd").allowed is True


def test_oversized_short_token_is_denied_not_raised():
    decision = decide(TransferMeta(id=TID, require_paid=True), short_token="1" * 5000 + ".x")
    assert decision.allowed is False
    assert decision.error == "payment_required"
