"""Tests for the OmegaConf configuration layer."""

import pytest

from pdf_webhook_backend.configuration import MASK, make_runtime_config, masked_container


class TestRuntimeConfig:
    def test_defaults(self):
        config = make_runtime_config()
        assert config.app.page_route == "pt-ed"
        assert config.webhook.canonical_locale == "en-US"
        assert config.webhook.missing_identifiers == "reject"
        assert config.contentful.pdf_field == "pdf"
        assert config.renderer.timeout_ms == 10000

    def test_environment_interpolation(self, monkeypatch):
        monkeypatch.setenv("CONTENTFUL_SYSTEM_USER_ID", "bot-42")
        assert make_runtime_config().webhook.system_actor_id == "bot-42"

    def test_overrides(self):
        config = make_runtime_config({"webhook": {"missing_identifiers": "skip_link"}, "dam": {"backend": "s3"}})
        assert config.webhook.missing_identifiers == "skip_link"
        assert config.dam.backend == "s3"

    def test_unknown_key_rejected(self):
        with pytest.raises(Exception):
            make_runtime_config({"webhook": {"no_such_option": 1}})

    @pytest.mark.parametrize(
        "overrides",
        [{"webhook": {"missing_identifiers": "ignore"}}, {"dam": {"backend": "dropbox"}}],
    )
    def test_invalid_choices(self, overrides):
        with pytest.raises(ValueError):
            make_runtime_config(overrides)


class TestMasking:
    def test_secrets_masked(self):
        config = make_runtime_config({"webhook": {"secret": "s3cret"}, "contentful": {"management_token": "cma"}})
        masked = masked_container(config)
        assert masked["webhook"]["secret"] == MASK
        assert masked["contentful"]["management_token"] == MASK
        assert masked["webhook"]["secret_header"] == "x-webhook-secret"

    def test_empty_secrets_left_visible(self):
        masked = masked_container(make_runtime_config({"contentful": {"delivery_token": ""}}))
        assert masked["contentful"]["delivery_token"] == ""
