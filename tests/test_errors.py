"""
Tests for the error taxonomy
"""
from __future__ import annotations

import pytest

from chatbridge.errors import (
    AttachmentFetchError,
    BridgeError,
    ConfigError,
    DeliveryError,
    ErrorCode,
    LinkUnavailableError,
    ProtocolError,
)
from chatbridge.platforms.base import ContainerNotFoundError


class TestErrors:
    @pytest.mark.parametrize("error, code", [
        (ProtocolError(), ErrorCode.PROTOCOL),
        (LinkUnavailableError(), ErrorCode.LINK_DOWN),
        (DeliveryError(), ErrorCode.DELIVERY),
        (AttachmentFetchError(), ErrorCode.FETCH),
        (ConfigError(), ErrorCode.CONFIG),
    ])
    def test_codes(self, error, code):
        assert isinstance(error, BridgeError)
        assert error.error_code == code
        assert str(error)

    def test_to_dict(self):
        error = ConfigError("Missing GUILD_ID", details={"missing": ["GUILD_ID"]})
        assert error.to_dict() == {
            "error": "CONFIG",
            "message": "Missing GUILD_ID",
            "details": {"missing": ["GUILD_ID"]},
        }

    def test_container_not_found_is_delivery_error(self):
        error = ContainerNotFoundError("jane-doe")
        assert isinstance(error, DeliveryError)
        assert error.name == "jane-doe"
        assert error.details == {"container": "jane-doe"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
