import pytest

from greenlight.__main__ import config_from_args
from greenlight.config import GreenlightConfig


def test_flags_override_config():
    defaults = GreenlightConfig(smtp_host="mail.test")
    cfg, host = config_from_args(
        [
            "--port", "8080",
            "--limiter-rps", "5",
            "--limiter-burst", "9",
            "--limiter-enabled", "false",
            "--shutdown-drain-deadline", "3",
            "--cors-trusted-origins", "http://a.test http://b.test",
        ],
        defaults,
    )
    assert host == "0.0.0.0"
    assert cfg.port == 8080
    assert cfg.limiter_rps == 5.0
    assert cfg.limiter_burst == 9
    assert cfg.limiter_enabled is False
    assert cfg.shutdown_drain_deadline == 3.0
    assert cfg.cors_trusted_origins == ["http://a.test", "http://b.test"]
    assert cfg.smtp_host == "mail.test"


def test_defaults_pass_through():
    defaults = GreenlightConfig(limiter_burst=4, env="staging")
    cfg, _ = config_from_args([], defaults)
    assert cfg.limiter_burst == 4
    assert cfg.env == "staging"


def test_invalid_bool_flag_rejected():
    with pytest.raises(SystemExit):
        config_from_args(["--limiter-enabled", "maybe"])
