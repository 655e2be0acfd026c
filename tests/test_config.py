"""Tests for configuration management."""

import json
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from feature_gallery.config import (
    Config, SearchConfig, ServiceConfig, get_default_config_path,
    create_example_config
)


class TestConfig:
    """Test cases for configuration management."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_default_config(self):
        """Test default configuration creation."""
        config = Config.default()

        assert config.search.max_results == 5
        assert config.search.chunk_size == 1_000_000
        assert config.search.min_query_length == 3
        assert config.search.match_padding == 5
        assert config.search.chunk_timeout_seconds is None

        assert config.service.base_url is None
        assert config.service.retry_attempts == 3

        assert config.gallery.max_items == 0
        assert config.gallery.default_display_name == "Image Gallery"
        assert config.text.default_display_name == "Text Descriptions"

        assert config.logging.level == "INFO"

    def test_config_to_file(self, temp_dir):
        """Test saving configuration to file."""
        config = Config.default()
        config_file = temp_dir / "nested" / "config.json"

        config.to_file(config_file)

        with open(config_file) as f:
            data = json.load(f)

        assert data['search']['max_results'] == 5
        assert data['service']['timeout_seconds'] == 30.0
        assert data['gallery']['max_items'] == 0

    def test_config_from_file(self, temp_dir):
        """Test loading configuration from file."""
        config_data = {
            'search': {'max_results': 10, 'chunk_timeout_seconds': 15.0},
            'service': {'base_url': 'http://example.org'},
            'text': {'max_items': 3}
        }

        config_file = temp_dir / "config.json"
        with open(config_file, 'w') as f:
            json.dump(config_data, f)

        config = Config.from_file(config_file)

        assert config.search.max_results == 10
        assert config.search.chunk_timeout_seconds == 15.0
        assert config.search.chunk_size == 1_000_000
        assert config.service.base_url == 'http://example.org'
        assert config.text.max_items == 3
        assert config.gallery.max_items == 0

    def test_config_from_missing_file(self, temp_dir):
        """Test loading configuration from non-existent file."""
        config = Config.from_file(temp_dir / "missing.json")
        assert config == Config.default()

    def test_merge_env_vars(self):
        """Test merging environment variables."""
        config = Config.default()

        env = {
            'FEATURE_GALLERY_SERVICE_URL': 'http://env:8999',
            'FEATURE_GALLERY_MAX_RESULTS': '7',
            'FEATURE_GALLERY_CHUNK_SIZE': '500000',
            'FEATURE_GALLERY_CHUNK_TIMEOUT': '2.5',
            'FEATURE_GALLERY_LOG_DIR': '/tmp/fg-logs'
        }
        with patch.dict(os.environ, env):
            config.merge_env_vars()

        assert config.service.base_url == 'http://env:8999'
        assert config.search.max_results == 7
        assert config.search.chunk_size == 500000
        assert config.search.chunk_timeout_seconds == 2.5
        assert config.logging.directory == '/tmp/fg-logs'

    def test_merge_cli_args(self):
        """Test merging CLI arguments."""
        config = Config.default()

        config.merge_cli_args(
            service_url='http://cli:8999',
            max_results=2,
            max_items=4,
            no_log_file=True,
            verbose=True
        )

        assert config.service.base_url == 'http://cli:8999'
        assert config.search.max_results == 2
        assert config.gallery.max_items == 4
        assert config.text.max_items == 4
        assert config.logging.directory is None
        assert config.logging.level == "DEBUG"

    def test_merge_cli_args_ignores_unset(self):
        config = Config.default()
        config.merge_cli_args(service_url=None, max_results=None, log_dir=None)
        assert config == Config.default()

    def test_get_default_config_path(self):
        """Test getting default config path."""
        with patch('pathlib.Path.exists', return_value=False):
            path = get_default_config_path()
            assert path == Path.home() / '.feature_gallery' / 'config.json'

    def test_create_example_config(self, temp_dir):
        """Test creating example configuration."""
        config_file = temp_dir / "example.json"

        result_path = create_example_config(config_file)

        assert result_path == config_file
        config = Config.from_file(config_file)
        assert config.service.base_url == "http://localhost:8999"
        assert config.search.chunk_timeout_seconds == 60.0
        assert config.gallery.max_items == 20

    def test_section_dataclasses(self):
        assert SearchConfig(max_results=1).chunk_size == 1_000_000
        assert ServiceConfig().backoff_factor == 1.0

    @pytest.mark.parametrize('kwargs', [
        {'chunk_size': 0},
        {'chunk_size': -1000},
        {'max_results': -1},
    ])
    def test_search_limits_rejected(self, kwargs):
        with pytest.raises(ValueError):
            SearchConfig(**kwargs)

    def test_search_limits_rejected_from_file(self, temp_dir):
        config_file = temp_dir / "config.json"
        config_file.write_text(json.dumps({'search': {'chunk_size': 0}}))

        with pytest.raises(ValueError, match="chunk_size"):
            Config.from_file(config_file)

    def test_search_limits_rejected_from_env(self):
        config = Config.default()

        with patch.dict(os.environ, {'FEATURE_GALLERY_CHUNK_SIZE': '0'}):
            with pytest.raises(ValueError, match="chunk_size"):
                config.merge_env_vars()

    def test_attribute_names_round_trip(self, temp_dir):
        config = Config.default()
        config.gallery.attribute_names = {'images': 'photo,figure'}
        config_file = temp_dir / "config.json"

        config.to_file(config_file)
        loaded = Config.from_file(config_file)

        assert loaded.gallery.attribute_names == {'images': 'photo,figure'}
        assert loaded.text.attribute_names == {}
