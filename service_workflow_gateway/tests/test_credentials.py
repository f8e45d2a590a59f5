"""
Unit tests for credential normalization.
"""

import pytest

from shared.errors import ConfigurationError
from service_workflow_gateway.app.domain.credentials import mask_credential, normalize_credential


class TestNormalizeCredential:
    """Test cases for normalize_credential."""

    @pytest.mark.parametrize("raw,expected", [
        ("sk-abc", "Bearer sk-abc"),
        ("api sk-abc", "Bearer sk-abc"),
        ("Bearer sk-abc", "Bearer sk-abc"),
        ("api Bearer sk-abc", "Bearer sk-abc"),
    ])
    def test_single_bearer_prefix(self, raw, expected):
        """Test every stored form yields exactly one Bearer prefix."""
        assert normalize_credential(raw) == expected

    def test_idempotent(self):
        """Test normalizing a normalized value changes nothing."""
        once = normalize_credential("api sk-abc")

        assert normalize_credential(once) == once

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty_credential_is_configuration_error(self, raw):
        """Test a missing credential is refused."""
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_credential(raw)

        assert exc_info.value.status_code == 422


class TestMaskCredential:
    """Test cases for mask_credential."""

    def test_mask_hides_middle(self):
        """Test long tokens keep only their edges."""
        assert mask_credential("Bearer sk-1234567890abcd") == "sk-1...abcd"

    def test_mask_short_and_empty(self):
        """Test short and missing tokens are fully hidden."""
        assert mask_credential("Bearer short") == "***"
        assert mask_credential(None) == "<empty>"
