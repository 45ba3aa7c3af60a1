import pytest

from services.errors import AuthenticationError
from services.signature import (
    compute_signature, is_valid_signature, verify_signature,
    wapisender_hash, verify_wapisender_callback,
)
from tests.utils import SECRET, ORDER_ID, sign

# sha512("order-1700000000000" "200" "50000.00" "SB-Mid-server-test"), computed outside Python
KNOWN_SIGNATURE = (
    "0cefaa0b62182cb6e4e0f65d77d6cb7947adcb5102b51779abc48a752a165de7"
    "42dfad17678410f84cef7a29192852ea39fa50498c2193c5de8c32d8c8250eb1"
)


def test_matches_provider_documented_algorithm():
    assert compute_signature(ORDER_ID, "200", "50000.00", SECRET) == KNOWN_SIGNATURE
    assert sign(ORDER_ID, "200", "50000.00") == KNOWN_SIGNATURE


def test_concatenation_is_raw_not_delimited():
    # moving a character between fields must not change the digest
    a = compute_signature("order-1", "200", "10.00", "k")
    b = compute_signature("order-12", "00", "10.00", "k")
    assert a == b


def test_accepts_valid_signature():
    verify_signature(ORDER_ID, "200", "50000.00", KNOWN_SIGNATURE, SECRET)
    assert is_valid_signature(ORDER_ID, "200", "50000.00", KNOWN_SIGNATURE, SECRET)


def _mutations(value: str):
    for i in range(len(value)):
        ch = value[i]
        repl = "0" if ch != "0" else "1"
        yield value[:i] + repl + value[i + 1:]


@pytest.mark.parametrize("field", ["order_id", "status_code", "gross_amount", "secret", "signature"])
def test_rejects_any_single_byte_mutation(field):
    fields = {"order_id": ORDER_ID, "status_code": "200", "gross_amount": "50000.00",
              "secret": SECRET, "signature": KNOWN_SIGNATURE}
    for mutated in _mutations(fields[field]):
        f = dict(fields, **{field: mutated})
        assert not is_valid_signature(f["order_id"], f["status_code"], f["gross_amount"],
                                      f["signature"], f["secret"]), (field, mutated)


def test_uppercase_hex_is_rejected():
    assert not is_valid_signature(ORDER_ID, "200", "50000.00", KNOWN_SIGNATURE.upper(), SECRET)


def test_gross_amount_format_matters():
    # provider sends "50000.00"; "50000" is a different string
    assert not is_valid_signature(ORDER_ID, "200", "50000", KNOWN_SIGNATURE, SECRET)


@pytest.mark.parametrize("missing", ["order_id", "status_code", "gross_amount", "signature"])
def test_missing_material_fails_closed(missing):
    f = {"order_id": ORDER_ID, "status_code": "200", "gross_amount": "50000.00",
         "signature": KNOWN_SIGNATURE}
    f[missing] = None
    with pytest.raises(AuthenticationError):
        verify_signature(f["order_id"], f["status_code"], f["gross_amount"], f["signature"], SECRET)


def test_empty_secret_rejects_even_matching_signature():
    sig = compute_signature(ORDER_ID, "200", "50000.00", "")
    with pytest.raises(AuthenticationError):
        verify_signature(ORDER_ID, "200", "50000.00", sig, "")


def test_secret_not_in_error_message():
    with pytest.raises(AuthenticationError) as ei:
        verify_signature(ORDER_ID, "200", "50000.00", "deadbeef", SECRET)
    assert SECRET not in str(ei.value)
    assert SECRET not in str(ei.value.to_dict())


def test_wapisender_hash_known_vector():
    # md5("dev-key#wapi-key#msg-42")
    assert wapisender_hash("dev-key", "wapi-key", "msg-42") == "3a4ed46befc1874e5338bc81119fb3c8"
    verify_wapisender_callback("dev-key", "msg-42", "3a4ed46befc1874e5338bc81119fb3c8", "wapi-key")


def test_wapisender_hash_rejects_mismatch_and_missing_key():
    with pytest.raises(AuthenticationError):
        verify_wapisender_callback("dev-key", "msg-43", "3a4ed46befc1874e5338bc81119fb3c8", "wapi-key")
    with pytest.raises(AuthenticationError):
        verify_wapisender_callback("dev-key", "msg-42", "3a4ed46befc1874e5338bc81119fb3c8", "")
