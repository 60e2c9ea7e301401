"""Unit tests for albatross.auth.signing: HMAC sign/verify round trips."""

import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone

import pytest

from albatross.auth import RequestSigner, RequestVerifier, SignedRequest, sign, verify
from albatross.auth.signing import SIGNATURE_HEADER, TIMESTAMP_WINDOW, compute_signature
from albatross.errors import MissingSecretError, SigningError

SECRET = b"test-shared-secret-0123456789abcdef"
URL = "https://AbuseIPDB.Worker.dev/?ipAddress=192.168.1.100&maxAgeInDays=30&verbose=True"
SIGNED_AT = datetime(2026, 10, 19, 12, 0, 30, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for signer and verifier."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class TestSign:
    def test_returns_signed_request(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert isinstance(signed, SignedRequest)
        assert signed.timestamp == "202610191200"
        assert signed.canonical_url == (
            "https://abuseipdb.worker.dev/?ipaddress=192.168.1.100"
            "&maxageindays=30&verbose=true&timestamp=202610191200"
        )

    def test_signature_is_hmac_sha256_base64(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        expected = hmac.new(SECRET, signed.canonical_url.encode("utf-8"), hashlib.sha256).digest()
        assert signed.digest == expected
        assert signed.signature == base64.b64encode(expected).decode("ascii")
        assert len(signed.signature) == 44
        assert signed.signature.endswith("=")

    def test_deterministic_within_a_minute(self):
        a = sign(SECRET, URL, now=SIGNED_AT)
        b = sign(SECRET, URL, now=SIGNED_AT + timedelta(seconds=29))
        assert a == b

    def test_changes_with_minute(self):
        a = sign(SECRET, URL, now=SIGNED_AT)
        b = sign(SECRET, URL, now=SIGNED_AT + timedelta(minutes=1))
        assert a.signature != b.signature

    def test_case_insensitive_input(self):
        assert sign(SECRET, URL, now=SIGNED_AT) == sign(SECRET, URL.lower(), now=SIGNED_AT)

    def test_str_secret_equals_utf8_bytes(self):
        assert sign("pässword", URL, now=SIGNED_AT) == sign("pässword".encode("utf-8"), URL, now=SIGNED_AT)

    def test_empty_secret_raises(self):
        with pytest.raises(MissingSecretError):
            sign(b"", URL, now=SIGNED_AT)

    def test_existing_timestamp_param_raises(self):
        with pytest.raises(SigningError):
            sign(SECRET, "https://w.dev/?timestamp=1", now=SIGNED_AT)

    def test_headers(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert signed.headers() == {SIGNATURE_HEADER: signed.signature}
        assert signed.headers("X-Sig") == {"X-Sig": signed.signature}


class TestVerify:
    def test_round_trip(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert verify(SECRET, signed.canonical_url, signed.signature, now=SIGNED_AT) is True

    def test_accepts_bytes_signature(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert verify(SECRET, signed.canonical_url, signed.signature.encode(), now=SIGNED_AT) is True

    def test_case_only_change_still_verifies(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert verify(SECRET, signed.canonical_url.upper(), signed.signature, now=SIGNED_AT) is True

    def test_changed_value_rejected(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        tampered = signed.canonical_url.replace("192.168.1.100", "192.168.1.101")
        assert verify(SECRET, tampered, signed.signature, now=SIGNED_AT) is False

    def test_added_parameter_rejected(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert verify(SECRET, signed.canonical_url + "&x=1", signed.signature, now=SIGNED_AT) is False

    def test_wrong_secret_rejected(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert verify(b"other-secret", signed.canonical_url, signed.signature, now=SIGNED_AT) is False

    def test_flipped_signature_rejected(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        raw = bytearray(signed.digest)
        raw[-1] ^= 0x01
        forged = base64.b64encode(bytes(raw)).decode()
        assert verify(SECRET, signed.canonical_url, forged, now=SIGNED_AT) is False

    def test_five_minutes_stale_rejected(self):
        signed = sign(SECRET, URL, now=SIGNED_AT - timedelta(minutes=5))
        assert verify(SECRET, signed.canonical_url, signed.signature, now=SIGNED_AT) is False

    def test_window_boundaries(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        stamp = SIGNED_AT.replace(second=0)
        for delta, expected in [
            (timedelta(minutes=1), True),
            (timedelta(minutes=2), True),
            (timedelta(minutes=2, seconds=1), False),
            (timedelta(minutes=2, seconds=45), False),
            (timedelta(minutes=3), False),
            (-timedelta(minutes=2), True),
            (-timedelta(minutes=2, seconds=1), False),
            (-timedelta(minutes=3), False),
        ]:
            assert verify(SECRET, signed.canonical_url, signed.signature, now=stamp + delta) is expected

    def test_missing_timestamp_rejected(self):
        url = "https://w.dev/?ipaddress=1.2.3.4"
        signature = compute_signature(SECRET, url)
        assert verify(SECRET, url, signature, now=SIGNED_AT) is False

    @pytest.mark.parametrize("stamp", ["", "2026101912", "20261019120a", "202613011200", "2026101912000"])
    def test_malformed_timestamp_rejected(self, stamp):
        url = f"https://w.dev/?ipaddress=1.2.3.4&timestamp={stamp}"
        signature = compute_signature(SECRET, url)
        assert verify(SECRET, url, signature, now=SIGNED_AT) is False

    def test_duplicate_timestamp_rejected(self):
        url = "https://w.dev/?timestamp=202610191200&timestamp=202610191200"
        signature = compute_signature(SECRET, url)
        assert verify(SECRET, url, signature, now=SIGNED_AT) is False

    @pytest.mark.parametrize("signature", [None, "", b"", "not base64 at all", "é"])
    def test_bad_signature_values_rejected(self, signature):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert verify(SECRET, signed.canonical_url, signature, now=SIGNED_AT) is False

    def test_empty_secret_rejected(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        assert verify(b"", signed.canonical_url, signed.signature, now=SIGNED_AT) is False

    def test_never_raises_on_garbage(self):
        assert verify(SECRET, None, "abc", now=SIGNED_AT) is False
        assert verify(SECRET, 12345, "abc", now=SIGNED_AT) is False
        assert verify(SECRET, URL, 12345, now=SIGNED_AT) is False

    def test_custom_window(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        later = SIGNED_AT + timedelta(minutes=4)
        assert verify(SECRET, signed.canonical_url, signed.signature, now=later) is False
        assert verify(
            SECRET, signed.canonical_url, signed.signature, now=later, window=timedelta(minutes=5)
        ) is True

    def test_default_window_is_two_minutes(self):
        assert TIMESTAMP_WINDOW == timedelta(minutes=2)


class TestSignerVerifierObjects:
    def test_round_trip_with_shared_clock(self):
        clock = FakeClock(SIGNED_AT)
        signer = RequestSigner(SECRET, clock=clock)
        verifier = RequestVerifier(SECRET, clock=clock)

        signed = signer.sign(URL)
        assert verifier.verify(signed.canonical_url, signed.signature) is True

    def test_expires_after_window(self):
        clock = FakeClock(SIGNED_AT)
        signed = RequestSigner(SECRET, clock=clock).sign(URL)
        verifier = RequestVerifier(SECRET, clock=clock)

        clock.advance(minutes=1)
        assert verifier.verify(signed.canonical_url, signed.signature) is True
        # stamped 12:00, now 12:02:30
        clock.advance(minutes=1)
        assert verifier.verify(signed.canonical_url, signed.signature) is False

    def test_independent_instances_agree(self):
        """Caller and proxy built separately from the same secret."""
        caller = RequestSigner(SECRET.decode(), clock=FakeClock(SIGNED_AT))
        proxy = RequestVerifier(SECRET, clock=FakeClock(SIGNED_AT + timedelta(seconds=70)))
        signed = caller.sign(URL)
        assert proxy.verify(signed.canonical_url, signed.signature) is True

    def test_signer_requires_secret(self):
        with pytest.raises(MissingSecretError):
            RequestSigner(b"")

    def test_verifier_without_secret_rejects(self):
        signed = sign(SECRET, URL, now=SIGNED_AT)
        verifier = RequestVerifier(None, clock=FakeClock(SIGNED_AT))
        assert verifier.verify(signed.canonical_url, signed.signature) is False

    def test_clock_failure_rejects(self):
        def broken_clock():
            raise RuntimeError("clock unavailable")

        signed = sign(SECRET, URL, now=SIGNED_AT)
        verifier = RequestVerifier(SECRET, clock=broken_clock)
        assert verifier.verify(signed.canonical_url, signed.signature) is False
