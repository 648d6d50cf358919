"""
Tests for licensekeeper/licensing/features.py module.
Tests feature and quota key definitions.
"""

import pytest

from licensekeeper.licensing.features import (
    FEATURE_FALLBACKS,
    QUOTA_FALLBACKS,
    FeatureCode,
    QuotaCode,
    feature_key,
)


class TestFeatureCode:
    """Tests for FeatureCode enum."""

    def test_values_are_authority_keys(self):
        """Test enum values match the keys the authority issues."""
        assert FeatureCode.SHARING.value == "feat:sharing"
        assert FeatureCode.COMMUNITY_NODES_CUSTOM_REGISTRY.value == (
            "feat:communityNodes:customRegistry"
        )

    def test_is_str(self):
        """Test codes compare equal to their raw keys."""
        assert FeatureCode.LDAP == "feat:ldap"

    def test_from_string(self):
        """Test lookup by raw key."""
        assert FeatureCode.from_string("feat:saml") is FeatureCode.SAML

    def test_from_string_unknown(self):
        """Test unknown keys raise ValueError."""
        with pytest.raises(ValueError, match="Unknown feature code"):
            FeatureCode.from_string("feat:teleport")


class TestQuotaCode:
    """Tests for QuotaCode enum."""

    def test_from_string(self):
        """Test lookup by raw key."""
        assert QuotaCode.from_string("quota:users") is QuotaCode.USERS_LIMIT

    def test_from_string_unknown(self):
        """Test unknown keys raise ValueError."""
        with pytest.raises(ValueError):
            QuotaCode.from_string("quota:teleports")


class TestFallbacks:
    """Tests for per-key fallbacks and key normalization."""

    def test_feature_fallbacks(self):
        """Test features that must not default to enabled."""
        assert FEATURE_FALLBACKS[FeatureCode.SHOW_NON_PROD_BANNER.value] is False
        assert FeatureCode.API_DISABLED.value not in FEATURE_FALLBACKS

    def test_quota_fallbacks(self):
        """Test quotas that must not default to unlimited."""
        assert QUOTA_FALLBACKS[QuotaCode.TEAM_PROJECT_LIMIT.value] == 0

    @pytest.mark.parametrize(
        "value,expected",
        [
            (FeatureCode.LDAP, "feat:ldap"),
            (QuotaCode.USERS_LIMIT, "quota:users"),
            ("feat:custom", "feat:custom"),
        ],
    )
    def test_feature_key(self, value, expected):
        """Test enums and raw strings normalize to the same key."""
        assert feature_key(value) == expected
