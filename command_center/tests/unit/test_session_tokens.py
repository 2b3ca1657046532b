import time

import pytest

from command_center.errors import ConfigurationError
from command_center.security import TokenSigner, b64url_decode, b64url_encode, issue_session_token

SECRET = "unit-test-signing-secret"


@pytest.fixture()
def signer() -> TokenSigner:
    return TokenSigner(SECRET)


def test_issued_token_round_trips_claims(signer: TokenSigner):
    token = issue_session_token(signer, 600, now=1_700_000_000)

    payload = signer.verify(token, now=1_700_000_001)
    assert payload == {"sub": "admin", "iat": 1_700_000_000, "exp": 1_700_000_600}
    assert token.count(".") == 1
    assert "=" not in token


def test_expired_token_is_rejected_even_with_valid_signature(signer: TokenSigner):
    now = int(time.time())
    token = signer.sign({"sub": "admin", "iat": now - 60, "exp": now - 1})

    assert signer.verify(token) is None


def test_token_expiring_exactly_now_is_rejected(signer: TokenSigner):
    token = signer.sign({"sub": "admin", "exp": 1_000})

    assert signer.verify(token, now=1_000) is None
    assert signer.verify(token, now=999) is not None


def test_sign_requires_exp(signer: TokenSigner):
    with pytest.raises(ValueError):
        signer.sign({"sub": "admin", "iat": 1})


@pytest.mark.parametrize("exp", ["2099-01-01", None, True, [1], {"at": 1}])
def test_non_numeric_exp_is_rejected(signer: TokenSigner, exp):
    token = signer.sign({"sub": "admin", "exp": exp})

    assert signer.verify(token, now=0) is None


def test_every_single_bit_flip_in_signature_is_rejected(signer: TokenSigner):
    token = issue_session_token(signer, 600)
    encoded, signature = token.split(".")
    raw = b64url_decode(signature)

    for index in range(len(raw)):
        for bit in range(8):
            flipped = bytearray(raw)
            flipped[index] ^= 1 << bit
            forged = f"{encoded}.{b64url_encode(bytes(flipped))}"
            assert signer.verify(forged) is None, (index, bit)


@pytest.mark.parametrize(
    "mutate",
    [
        lambda t: t + "x",
        lambda t: t[:-1],
        lambda t: t + ".extra",
        lambda t: t.replace(".", ""),
        lambda t: "." + t.split(".")[1],
        lambda t: t.split(".")[0] + ".",
        lambda t: "",
        lambda t: t + "é",
    ],
)
def test_malformed_tokens_are_rejected(signer: TokenSigner, mutate):
    token = issue_session_token(signer, 600)

    assert signer.verify(mutate(token)) is None


def test_tampered_payload_is_rejected(signer: TokenSigner):
    token = issue_session_token(signer, 600, now=1_700_000_000)
    _, signature = token.split(".")
    forged_payload = b64url_encode(b'{"exp":9999999999,"iat":1700000000,"sub":"admin"}')

    assert signer.verify(f"{forged_payload}.{signature}", now=1_700_000_001) is None


def test_token_from_other_secret_is_rejected(signer: TokenSigner):
    other = TokenSigner("some-other-secret")
    token = issue_session_token(other, 600)

    assert signer.verify(token) is None


def test_unsigned_garbage_payload_does_not_raise(signer: TokenSigner):
    garbage = b64url_encode(b"not json at all")
    signature = signer.sign({"exp": 1}).split(".")[1]

    assert signer.verify(f"{garbage}.{signature}") is None


def test_signed_non_object_payload_is_rejected(signer: TokenSigner):
    encoded = b64url_encode(b"[1, 2, 3]")
    token = f"{encoded}.{signer._signature(encoded)}"

    assert signer.verify(token) is None


@pytest.mark.parametrize("secret", ["", "   ", None])
def test_signer_requires_secret(secret):
    with pytest.raises(ConfigurationError):
        TokenSigner(secret)
