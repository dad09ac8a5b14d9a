"""Tests for Paddle signature verification.

Tests:
- ts/h1 header parsing (order, unknown keys, malformed parts)
- Failure taxonomy: missing input, misconfiguration, malformed, mismatch, bad JSON
- Constant-time comparison and hex case normalization
- Optional freshness window (freezegun)
- Properties (hypothesis): round trip, single-bit tamper, missing keys, empty secret
"""

from __future__ import annotations

import hashlib
import hmac
import json
from unittest.mock import patch

import pytest
from freezegun import freeze_time
from hypothesis import given, settings
from hypothesis import strategies as st

from payhook.webhooks.verification import (
    FAILURE_MESSAGES,
    HmacSignatureVerifier,
    Invalid,
    SignatureVerifier,
    Valid,
    VerificationFailure,
    compute_signature,
    parse_signature_header,
    redact_secret,
    sign,
    verify,
)

SECRET = b"whsec_test"
TS = "1700000000"
BODY = b'{"event_type":"transaction.paid","data":{"id":"txn_1"}}'


def _h1(body: bytes, secret: bytes = SECRET, ts: str = TS) -> str:
    return hmac.new(secret, f"{ts}:".encode() + body, hashlib.sha256).hexdigest()


# ── Header parsing ────────────────────────────────────────────────────────


class TestParseSignatureHeader:
    def test_basic(self):
        assert parse_signature_header("ts=1;h1=abc") == {"ts": "1", "h1": "abc"}

    def test_order_not_significant(self):
        assert parse_signature_header("h1=abc;ts=1") == {"ts": "1", "h1": "abc"}

    def test_unknown_keys_kept_but_harmless(self):
        parts = parse_signature_header("ts=1;v2=zzz;h1=abc")
        assert parts["ts"] == "1"
        assert parts["h1"] == "abc"

    def test_parts_without_equals_skipped(self):
        assert parse_signature_header("garbage;ts=1;;h1=abc;") == {"ts": "1", "h1": "abc"}

    def test_splits_on_first_equals_only(self):
        assert parse_signature_header("ts=1;h1=ab=cd") == {"ts": "1", "h1": "ab=cd"}

    def test_whitespace_stripped(self):
        assert parse_signature_header(" ts = 1 ; h1 = abc ") == {"ts": "1", "h1": "abc"}


# ── Verification outcomes ────────────────────────────────────────────────


class TestVerify:
    def test_end_to_end_scenario(self):
        header = f"ts={TS};h1={_h1(BODY)}"
        result = verify(BODY, header, SECRET)
        assert isinstance(result, Valid)
        assert result.ok is True
        assert result.event["event_type"] == "transaction.paid"

    def test_compute_signature_matches_reference(self):
        assert compute_signature(BODY, SECRET, TS) == _h1(BODY)

    def test_sign_builds_verifiable_header(self):
        assert isinstance(verify(BODY, sign(BODY, SECRET, TS), SECRET), Valid)

    def test_uppercase_h1_still_matches(self):
        """Hex digests are case-normalized before comparison."""
        header = f"ts={TS};h1={_h1(BODY).upper()}"
        assert isinstance(verify(BODY, header, SECRET), Valid)

    def test_missing_h1_is_malformed(self):
        result = verify(BODY, "ts=1700000000", SECRET)
        assert isinstance(result, Invalid)
        assert result.reason is VerificationFailure.MALFORMED_SIGNATURE

    def test_missing_ts_is_malformed(self):
        result = verify(BODY, f"h1={_h1(BODY)}", SECRET)
        assert result.reason is VerificationFailure.MALFORMED_SIGNATURE

    def test_empty_header_is_missing_input(self):
        assert verify(BODY, "", SECRET).reason is VerificationFailure.MISSING_INPUT

    def test_empty_body_is_missing_input(self):
        assert verify(b"", f"ts={TS};h1=00", SECRET).reason is VerificationFailure.MISSING_INPUT

    def test_missing_input_checked_before_secret(self):
        assert verify(b"", "", b"").reason is VerificationFailure.MISSING_INPUT

    def test_empty_secret_is_misconfigured(self):
        header = f"ts={TS};h1={_h1(BODY)}"
        result = verify(BODY, header, b"")
        assert result.reason is VerificationFailure.SERVER_MISCONFIGURED
        assert result.reason is not VerificationFailure.SIGNATURE_MISMATCH

    def test_wrong_secret_is_mismatch(self):
        header = f"ts={TS};h1={_h1(BODY, secret=b'other')}"
        assert verify(BODY, header, SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    def test_tampered_body_is_mismatch(self):
        header = f"ts={TS};h1={_h1(BODY)}"
        tampered = BODY.replace(b"txn_1", b"txn_2")
        assert verify(tampered, header, SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    def test_tampered_timestamp_is_mismatch(self):
        header = f"ts=1700000001;h1={_h1(BODY)}"
        assert verify(BODY, header, SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    def test_reserialized_body_is_mismatch(self):
        """Parse-then-dump changes bytes and must not verify."""
        header = f"ts={TS};h1={_h1(BODY)}"
        reserialized = json.dumps(json.loads(BODY)).encode()
        assert reserialized != BODY
        assert verify(reserialized, header, SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    def test_non_hex_h1_is_mismatch_not_crash(self):
        assert verify(BODY, f"ts={TS};h1=not-hex!", SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    def test_short_h1_is_mismatch(self):
        assert verify(BODY, f"ts={TS};h1={_h1(BODY)[:32]}", SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    def test_h1_with_embedded_whitespace_is_mismatch(self):
        digest = _h1(BODY)
        spaced = " ".join(digest[i : i + 2] for i in range(0, len(digest), 2))
        assert verify(BODY, f"ts={TS};h1={spaced}", SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    def test_h1_with_surrounding_whitespace_matches(self):
        assert isinstance(verify(BODY, f"ts={TS}; h1= {_h1(BODY)} ", SECRET), Valid)

    def test_deeply_nested_json_is_invalid_payload(self):
        body = b"[" * 100_000 + b"]" * 100_000
        result = verify(body, sign(body, SECRET, TS), SECRET)
        assert result.reason is VerificationFailure.INVALID_PAYLOAD

    def test_valid_signature_bad_json_is_invalid_payload(self):
        body = b"not json at all"
        result = verify(body, f"ts={TS};h1={_h1(body)}", SECRET)
        assert result.reason is VerificationFailure.INVALID_PAYLOAD

    def test_valid_signature_non_object_json_is_invalid_payload(self):
        body = b"[1, 2, 3]"
        result = verify(body, f"ts={TS};h1={_h1(body)}", SECRET)
        assert result.reason is VerificationFailure.INVALID_PAYLOAD

    def test_str_secret_accepted(self):
        header = f"ts={TS};h1={_h1(BODY)}"
        assert isinstance(verify(BODY, header, "whsec_test"), Valid)

    def test_invalid_messages_never_echo_inputs(self):
        header = f"ts={TS};h1={_h1(BODY, secret=b'other')}"
        result = verify(BODY, header, SECRET)
        assert result.message == FAILURE_MESSAGES[VerificationFailure.SIGNATURE_MISMATCH]
        assert "whsec" not in result.message
        assert _h1(BODY, secret=b"other") not in result.message

    def test_uses_constant_time_primitive(self):
        header = f"ts={TS};h1={_h1(BODY)}"
        with patch(
            "payhook.webhooks.verification.hmac.compare_digest",
            wraps=hmac.compare_digest,
        ) as spy:
            verify(BODY, header, SECRET)
        spy.assert_called_once()
        expected, received = spy.call_args[0]
        assert isinstance(expected, bytes) and isinstance(received, bytes)

    def test_verifier_satisfies_protocol(self):
        assert isinstance(HmacSignatureVerifier(), SignatureVerifier)


# ── Freshness window ──────────────────────────────────────────────────────


class TestFreshnessWindow:
    """Disabled by default; when set, rejects stale or future timestamps."""

    @freeze_time("2030-01-01")
    def test_disabled_by_default_accepts_old_timestamp(self):
        assert isinstance(HmacSignatureVerifier().verify(BODY, sign(BODY, SECRET, TS), SECRET), Valid)

    @freeze_time("2023-11-14 22:13:20")  # == 1700000000
    def test_fresh_timestamp_accepted(self):
        verifier = HmacSignatureVerifier(max_age_seconds=300)
        assert isinstance(verifier.verify(BODY, sign(BODY, SECRET, TS), SECRET), Valid)

    @freeze_time("2023-11-14 22:13:20")
    def test_old_timestamp_rejected(self):
        verifier = HmacSignatureVerifier(max_age_seconds=300)
        header = sign(BODY, SECRET, 1700000000 - 600)
        assert verifier.verify(BODY, header, SECRET).reason is VerificationFailure.STALE_TIMESTAMP

    @freeze_time("2023-11-14 22:13:20")
    def test_future_timestamp_rejected(self):
        verifier = HmacSignatureVerifier(max_age_seconds=300)
        header = sign(BODY, SECRET, 1700000000 + 600)
        assert verifier.verify(BODY, header, SECRET).reason is VerificationFailure.STALE_TIMESTAMP

    @freeze_time("2023-11-14 22:13:20")
    def test_forged_stale_request_reports_mismatch(self):
        verifier = HmacSignatureVerifier(max_age_seconds=300)
        header = f"ts=1;h1={_h1(BODY, secret=b'other', ts='1')}"
        assert verifier.verify(BODY, header, SECRET).reason is VerificationFailure.SIGNATURE_MISMATCH

    @freeze_time("2023-11-14 22:13:20")
    def test_non_integer_timestamp_is_malformed(self):
        verifier = HmacSignatureVerifier(max_age_seconds=300)
        header = sign(BODY, SECRET, "yesterday")
        assert verifier.verify(BODY, header, SECRET).reason is VerificationFailure.MALFORMED_SIGNATURE

    @freeze_time("2023-11-14 22:13:20")
    def test_huge_timestamp_is_stale(self):
        verifier = HmacSignatureVerifier(max_age_seconds=300)
        header = sign(BODY, SECRET, "9" * 400)
        assert verifier.verify(BODY, header, SECRET).reason is VerificationFailure.STALE_TIMESTAMP

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            HmacSignatureVerifier(max_age_seconds=-1)


class TestRedactSecret:
    def test_prefix_only(self):
        assert redact_secret("whsec_abcdefghijkl") == "whsec_..."

    def test_bytes(self):
        assert redact_secret(b"whsec_abcdefghijkl") == "whsec_..."

    def test_short_secret_fully_masked(self):
        assert redact_secret("abc") == "***"

    def test_unset(self):
        assert redact_secret("") == "<unset>"
        assert redact_secret(None) == "<unset>"


# ── Properties ────────────────────────────────────────────────────────────

_json_objects = st.dictionaries(
    st.text(max_size=10),
    st.one_of(st.integers(), st.text(max_size=20), st.booleans(), st.none()),
    max_size=5,
)
_secrets = st.binary(min_size=1, max_size=64)
_timestamps = st.integers(min_value=0, max_value=2**40).map(str)


class TestVerificationProperties:
    @given(obj=_json_objects, secret=_secrets, ts=_timestamps)
    @settings(max_examples=100)
    def test_correctly_signed_body_is_valid(self, obj, secret, ts):
        body = json.dumps(obj).encode()
        header = f"ts={ts};h1={_h1(body, secret, ts)}"
        result = verify(body, header, secret)
        assert isinstance(result, Valid)
        assert result.event == obj

    @given(body=st.binary(min_size=1, max_size=256), secret=_secrets, ts=_timestamps, data=st.data())
    @settings(max_examples=100)
    def test_single_bit_flip_is_mismatch(self, body, secret, ts, data):
        header = f"ts={ts};h1={_h1(body, secret, ts)}"
        index = data.draw(st.integers(min_value=0, max_value=len(body) - 1))
        bit = data.draw(st.integers(min_value=0, max_value=7))
        flipped = bytearray(body)
        flipped[index] ^= 1 << bit
        result = verify(bytes(flipped), header, secret)
        assert result.reason is VerificationFailure.SIGNATURE_MISMATCH

    @given(
        body=st.binary(min_size=1, max_size=128),
        secret=_secrets,
        ts=_timestamps,
        keep=st.sampled_from(["ts", "h1"]),
    )
    @settings(max_examples=50)
    def test_missing_required_key_is_malformed(self, body, secret, ts, keep):
        header = f"ts={ts}" if keep == "ts" else f"h1={_h1(body, secret, ts)}"
        assert verify(body, header, secret).reason is VerificationFailure.MALFORMED_SIGNATURE

    @given(body=st.binary(min_size=1, max_size=128), ts=_timestamps)
    @settings(max_examples=50)
    def test_empty_secret_is_always_misconfigured(self, body, ts):
        header = f"ts={ts};h1={_h1(body, b'any', ts)}"
        assert verify(body, header, b"").reason is VerificationFailure.SERVER_MISCONFIGURED
