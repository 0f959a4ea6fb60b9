"""
Unit Tests for referral codes

Tests cover:
1. Code alphabet and normalization
2. Collision retries
3. Longer-code fallback and exhaustion
"""

import pytest

from wallet.config import Settings
from wallet.errors import ReferralCodeExhaustedError
from wallet.referrals import (
    REFERRAL_ALPHABET,
    allocate_referral_code,
    generate_referral_code,
    normalize_referral_code,
)


class TestReferralCodes:
    """Tests for referral code generation and allocation."""

    def test_generated_code_alphabet(self):
        """Test codes use uppercase letters and digits only."""
        code = generate_referral_code(6)

        assert len(code) == 6
        assert set(code) <= set(REFERRAL_ALPHABET)

    def test_normalize(self):
        """Test codes are trimmed and uppercased and blanks become None."""
        assert normalize_referral_code(" ab12cd ") == "AB12CD"
        assert normalize_referral_code("   ") is None
        assert normalize_referral_code(None) is None

    def test_retries_on_collision(self):
        """Test a taken code is redrawn."""
        draws = iter(["TAKEN1", "TAKEN1", "FREE01"])

        code = allocate_referral_code(
            lambda c: c == "TAKEN1", Settings(), generate=lambda length: next(draws),
        )

        assert code == "FREE01"

    def test_falls_back_to_longer_code(self):
        """Test a saturated 6-character space moves on to 8 characters."""
        settings = Settings(referral_code_max_attempts=3)
        lengths = []

        def generate(length):
            lengths.append(length)
            return "X" * length

        code = allocate_referral_code(lambda c: len(c) == 6, settings, generate=generate)

        assert code == "XXXXXXXX"
        assert lengths == [6, 6, 6, 8]

    def test_gives_up_eventually(self):
        """Test allocation fails once every length is exhausted."""
        settings = Settings(referral_code_max_attempts=2)

        with pytest.raises(ReferralCodeExhaustedError):
            allocate_referral_code(lambda c: True, settings, generate=lambda length: "A" * length)
