import pytest

from stock_digest.config import (DEFAULT_EMAIL_FROM, DEFAULT_GEMINI_MODEL,
                                 REQUIRED_KEYS, load_settings)

ENV = {
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role",
    "GEMINI_API_KEY": "gemini-key",
    "RESEND_API_KEY": "re_test",
    "CRON_SECRET": "s3cret",
    "APP_URL": "https://digest.example.com/",
}


def test_load_settings_from_mapping():
    settings = load_settings(ENV)
    assert settings.cron_secret == "s3cret"
    assert settings.gemini_model == DEFAULT_GEMINI_MODEL
    assert settings.email_from == DEFAULT_EMAIL_FROM
    assert settings.skip_sent_in_slot is False
    assert settings.dashboard_url == "https://digest.example.com/dashboard"


def test_optional_overrides():
    settings = load_settings(
        {
            **ENV,
            "GEMINI_MODEL": "gemini-2.5-pro",
            "EMAIL_FROM": "Digest <digest@example.com>",
            "DIGEST_SKIP_SENT_IN_SLOT": "true",
            "LOG_LEVEL": "debug",
        }
    )
    assert settings.gemini_model == "gemini-2.5-pro"
    assert settings.email_from == "Digest <digest@example.com>"
    assert settings.skip_sent_in_slot is True
    assert settings.log_level == "debug"


@pytest.mark.parametrize("missing", REQUIRED_KEYS)
def test_missing_required_key_fails_fast(missing):
    env = {key: value for key, value in ENV.items() if key != missing}
    with pytest.raises(RuntimeError, match=missing):
        load_settings(env)


def test_empty_value_counts_as_missing():
    with pytest.raises(RuntimeError, match="CRON_SECRET"):
        load_settings({**ENV, "CRON_SECRET": ""})
