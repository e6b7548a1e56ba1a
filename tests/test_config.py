"""
Tests for configuration assembly, presets and validation models.
"""

import pytest
from pydantic import ValidationError

from voice_frontend import config as frontend_config
from voice_frontend.config_models import (
    ButtonPatternConfig,
    FrontendConfig,
    UploadConfig,
)
from voice_frontend.factory import ProviderFactory
from voice_frontend.providers import HttpUploader, NullPressSource, NullWakeLock
from voice_frontend.utils.press_pattern import WindowBoundary


@pytest.fixture
def valid_config():
    config = frontend_config.get_testing_config()
    config['upload']['config']['url'] = "http://localhost:8000/voice"
    return config


class TestPresets:
    def test_framework_config_has_every_section(self):
        config = frontend_config.get_framework_config()
        for section in ('wakeword', 'recorder', 'upload', 'playback', 'press_source',
                        'wake_lock', 'silence', 'button_pattern', 'arbiter', 'service'):
            assert section in config

    def test_sections_are_copies(self):
        first = frontend_config.get_framework_config()
        first['upload']['config']['headers']['continue'] = 'X-Other'
        first['silence']['duration_ms'] = 1
        second = frontend_config.get_framework_config()
        assert second['upload']['config']['headers']['continue'] == 'X-Continue-Conversation'
        assert second['silence']['duration_ms'] == 2500

    def test_testing_preset_disables_host_hooks(self):
        config = frontend_config.get_config_for_preset("test")
        assert config['press_source']['provider'] == 'none'
        assert config['wake_lock']['provider'] == 'none'
        assert config['service']['require_input_device'] is False
        assert config['arbiter']['settle_delay'] < frontend_config.ARBITER_CONFIG['settle_delay']

    def test_unknown_preset_falls_back_to_default(self):
        assert frontend_config.get_config_for_preset("nope") == frontend_config.get_framework_config()

    def test_validate_environment_reports_missing_url(self, valid_config):
        valid_config['upload']['config']['url'] = ""
        results = frontend_config.validate_environment(valid_config)
        assert results['valid'] is False
        assert any("VOICE_API_URL" in e for e in results['errors'])


class TestModels:
    def test_valid_config(self, valid_config):
        model = FrontendConfig.from_dict(valid_config)
        assert model.button_pattern.boundary is WindowBoundary.EXCLUSIVE
        assert model.providers['wakeword'] == 'openwakeword'
        assert model.providers['press_source'] == 'none'

    def test_upload_url_scheme(self):
        with pytest.raises(ValidationError):
            UploadConfig(url="ftp://example.com/voice")

    def test_unknown_header_key(self):
        with pytest.raises(ValidationError):
            UploadConfig(headers={'language': 'X-Language'})

    def test_boundary_values(self):
        assert ButtonPatternConfig(boundary="inclusive").boundary is WindowBoundary.INCLUSIVE
        with pytest.raises(ValidationError):
            ButtonPatternConfig(boundary="sometimes")

    def test_sample_interval_must_fit_silence_duration(self, valid_config):
        valid_config['recorder']['config']['sample_interval_ms'] = 3000
        with pytest.raises(ValidationError):
            FrontendConfig.from_dict(valid_config)

    def test_invalid_framework(self, valid_config):
        valid_config['wakeword']['config']['inference_framework'] = 'coreml'
        with pytest.raises(ValidationError):
            FrontendConfig.from_dict(valid_config)


class TestFactory:
    def test_creates_selected_providers(self, valid_config):
        providers = ProviderFactory.create_all_providers({
            'upload': valid_config['upload'],
            'press_source': valid_config['press_source'],
            'wake_lock': valid_config['wake_lock'],
        })
        assert isinstance(providers['upload'], HttpUploader)
        assert isinstance(providers['press_source'], NullPressSource)
        assert isinstance(providers['wake_lock'], NullWakeLock)
        assert 'wakeword' not in providers

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            ProviderFactory.create_player('vlc', {})
