import pytest
from pydantic import ValidationError

from relay.shared.config import Settings


def test_settings_are_frozen():
    s = Settings(MAX_TOTAL_FILES=3)
    with pytest.raises(ValidationError):
        s.MAX_TOTAL_FILES = 4


def test_only_consumed_settings_are_declared():
    assert set(Settings.model_fields) == {
        "UPLOAD_DIR", "DATABASE_PATH", "MAX_FILE_SIZE", "MAX_TOTAL_FILES",
        "ALLOWED_IP_RANGES", "ALLOW_ALL_IPS", "TRUST_PROXY_HEADERS", "LOG_LEVEL", "PORT",
    }


def test_ranges_accept_a_list():
    assert Settings(ALLOWED_IP_RANGES=["10.0.0.0/8"]).ALLOWED_IP_RANGES == ("10.0.0.0/8",)
