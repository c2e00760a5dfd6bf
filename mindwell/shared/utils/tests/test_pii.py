"""Tests for PII hashing."""
import pytest

from mindwell.shared.utils import pii
from mindwell.shared.utils.pii import configure_pii_salt, hash_pii, hash_text_for_audit


@pytest.fixture(autouse=True)
def reset_salt():
    previous = pii._PII_SALT
    yield
    pii._PII_SALT = previous


class TestHashPii:
    """Salted hashing of user identifiers."""

    def test_short_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("too-short")

    def test_unconfigured_salt_raises(self):
        pii._PII_SALT = None

        with pytest.raises(RuntimeError):
            hash_pii("student-1")

    def test_deterministic_and_salted(self):
        configure_pii_salt("a" * 32)
        first = hash_pii("student-1")
        assert first == hash_pii("student-1")
        assert len(first) == 64
        assert "student-1" not in first

        configure_pii_salt("b" * 32)
        assert hash_pii("student-1") != first

    def test_text_fingerprint(self):
        assert hash_text_for_audit("hello") == hash_text_for_audit("hello")
        assert hash_text_for_audit("hello") != hash_text_for_audit("hello!")
