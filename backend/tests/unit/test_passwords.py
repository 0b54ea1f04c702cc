"""Tests for PasswordHasher: bcrypt scheme plus legacy MD5 fallback."""

import pytest

from mailauth.core.passwords import (
    LEGACY_SALT_LENGTH,
    PasswordHasher,
    is_current_scheme,
    legacy_hash,
)

_BCRYPT_ROUNDS = 4  # Low cost factor for fast tests


@pytest.fixture(scope="module")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=_BCRYPT_ROUNDS)


class TestCurrentScheme:
    """Tests for hash() / verify() with bcrypt hashes."""

    @pytest.mark.parametrize("password", ["pw12", "", "ünïcødé", "x" * 200])
    def test_hash_verifies(self, hasher, password):
        assert hasher.verify(password, hasher.hash(password))

    def test_other_password_does_not_verify(self, hasher):
        assert not hasher.verify("wrong", hasher.hash("right"))

    def test_long_passwords_differ_past_72_bytes(self, hasher):
        """Bytes beyond bcrypt's input limit still count."""
        base = "a" * 100
        assert not hasher.verify(base + "1", hasher.hash(base + "2"))

    def test_hash_is_salted(self, hasher):
        assert hasher.hash("same") != hasher.hash("same")

    def test_cost_is_embedded(self, hasher):
        assert hasher.hash("pw12").startswith("$2b$04$")

    def test_output_is_current_scheme(self, hasher):
        assert is_current_scheme(hasher.hash("pw12"))

    def test_corrupt_bcrypt_hash_is_mismatch(self, hasher):
        corrupt = "$2b$04$" + "!" * 53
        assert not hasher.verify("pw12", corrupt)


class TestLegacyScheme:
    """Tests for verifying hashes produced by the old salted-MD5 scheme."""

    def test_legacy_format(self):
        stored = legacy_hash("abcde", "pw12")
        assert len(stored) == LEGACY_SALT_LENGTH + 32
        assert stored.startswith("abcde")
        assert not is_current_scheme(stored)

    def test_legacy_hash_verifies(self, hasher):
        assert hasher.verify("pw12", legacy_hash("Xy9!z", "pw12"))

    def test_legacy_hash_wrong_password(self, hasher):
        assert not hasher.verify("wrong", legacy_hash("Xy9!z", "pw12"))

    def test_legacy_hash_wrong_salt(self, hasher):
        stored = legacy_hash("abcde", "pw12")
        assert not hasher.verify("pw12", "zzzzz" + stored[LEGACY_SALT_LENGTH:])

    @pytest.mark.parametrize("stored", ["", "short", "abcde" + "0" * 31, "x" * 60])
    def test_malformed_stored_value(self, hasher, stored):
        assert not hasher.verify("pw12", stored)

    def test_hash_never_produces_legacy_format(self, hasher):
        assert is_current_scheme(hasher.hash("pw12"))


class TestBurn:
    """Tests for PasswordHasher.burn()."""

    def test_burn_returns_nothing(self, hasher):
        assert hasher.burn("anything") is None
