"""Configuration management for the feature gallery."""

import json
import os
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Dict, Optional


@dataclass
class SearchConfig:
    """Feature search settings."""
    max_results: int = 5
    chunk_size: int = 1_000_000  # bp per feature-retrieval request
    min_query_length: int = 3
    match_padding: int = 5  # bp added around text-index hits
    chunk_timeout_seconds: Optional[float] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Reject limits that would stall or invert a search."""
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.max_results < 0:
            raise ValueError(f"max_results must not be negative, got {self.max_results}")


@dataclass
class ServiceConfig:
    """Remote feature-retrieval service settings."""
    base_url: Optional[str] = None
    timeout_seconds: float = 30.0
    retry_attempts: int = 3
    backoff_factor: float = 1.0


@dataclass
class GalleryConfig:
    """Image gallery view settings."""
    max_items: int = 0  # 0 means unlimited
    default_display_name: str = "Image Gallery"
    # images/labels/types -> comma-separated attribute names to read instead
    attribute_names: Dict[str, str] = field(default_factory=dict)


@dataclass
class TextConfig:
    """Textual descriptions view settings."""
    max_items: int = 0  # 0 means unlimited
    default_display_name: str = "Text Descriptions"
    # markdown_urls/descriptions/content_types -> comma-separated attribute names
    attribute_names: Dict[str, str] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    directory: Optional[str] = ".feature_gallery_logs"
    colors: bool = True


@dataclass
class Config:
    """Main configuration container."""
    search: SearchConfig
    service: ServiceConfig
    gallery: GalleryConfig
    text: TextConfig
    logging: LoggingConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            search=SearchConfig(),
            service=ServiceConfig(),
            gallery=GalleryConfig(),
            text=TextConfig(),
            logging=LoggingConfig()
        )

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from JSON file."""
        if not path.exists():
            return cls.default()

        with open(path, 'r') as f:
            data = json.load(f)

        return cls(
            search=SearchConfig(**data.get('search', {})),
            service=ServiceConfig(**data.get('service', {})),
            gallery=GalleryConfig(**data.get('gallery', {})),
            text=TextConfig(**data.get('text', {})),
            logging=LoggingConfig(**data.get('logging', {}))
        )

    def to_file(self, path: Path) -> None:
        """Save configuration to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'search': asdict(self.search),
            'service': asdict(self.service),
            'gallery': asdict(self.gallery),
            'text': asdict(self.text),
            'logging': asdict(self.logging)
        }

        with open(path, 'w') as f:
            json.dump(data, f, indent=2)

    def merge_env_vars(self) -> None:
        """Merge environment variables into configuration."""
        if os.getenv('FEATURE_GALLERY_SERVICE_URL'):
            self.service.base_url = os.getenv('FEATURE_GALLERY_SERVICE_URL')

        if os.getenv('FEATURE_GALLERY_MAX_RESULTS'):
            self.search.max_results = int(os.getenv('FEATURE_GALLERY_MAX_RESULTS'))
        if os.getenv('FEATURE_GALLERY_CHUNK_SIZE'):
            self.search.chunk_size = int(os.getenv('FEATURE_GALLERY_CHUNK_SIZE'))
        if os.getenv('FEATURE_GALLERY_CHUNK_TIMEOUT'):
            self.search.chunk_timeout_seconds = float(os.getenv('FEATURE_GALLERY_CHUNK_TIMEOUT'))
        self.search.validate()

        if os.getenv('FEATURE_GALLERY_LOG_DIR'):
            self.logging.directory = os.getenv('FEATURE_GALLERY_LOG_DIR')

    def merge_cli_args(self, **kwargs) -> None:
        """Merge CLI arguments into configuration."""
        if kwargs.get('service_url'):
            self.service.base_url = kwargs['service_url']
        if kwargs.get('max_results'):
            self.search.max_results = kwargs['max_results']
        if kwargs.get('chunk_timeout'):
            self.search.chunk_timeout_seconds = kwargs['chunk_timeout']
        self.search.validate()

        if kwargs.get('max_items') is not None:
            self.gallery.max_items = kwargs['max_items']
            self.text.max_items = kwargs['max_items']

        if kwargs.get('log_dir'):
            self.logging.directory = kwargs['log_dir']
        if kwargs.get('no_log_file'):
            self.logging.directory = None
        if kwargs.get('verbose'):
            self.logging.level = "DEBUG"


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    locations = [
        Path.home() / '.feature_gallery' / 'config.json',
        Path.home() / '.config' / 'feature_gallery' / 'config.json',
        Path('.feature_gallery.json'),
        Path('feature_gallery.config.json')
    ]

    for path in locations:
        if path.exists():
            return path

    return Path.home() / '.feature_gallery' / 'config.json'


def create_example_config(path: Optional[Path] = None) -> Path:
    """Create an example configuration file."""
    if path is None:
        path = Path('feature_gallery.config.example.json')

    config = Config.default()

    config.service.base_url = "http://localhost:8999"
    config.search.chunk_timeout_seconds = 60.0
    config.gallery.max_items = 20

    config.to_file(path)
    return path
