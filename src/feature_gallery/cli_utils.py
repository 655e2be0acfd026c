"""CLI helpers: quiet-aware echo and session loading."""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from .config import ServiceConfig
from .error_handler import FeatureGalleryError
from .session import StaticSessionContext

# Global flag for quiet mode
_quiet_mode = False


def set_quiet_mode(quiet: bool) -> None:
    """Set the global quiet mode flag."""
    global _quiet_mode
    _quiet_mode = quiet


def echo(message: str = "", err: bool = False, **kwargs) -> None:
    """Echo wrapper that respects quiet mode."""
    if _quiet_mode and not err:
        return
    click.echo(message, err=err, **kwargs)


def fail(message: str, code: int = 1) -> None:
    """Print an error and exit."""
    click.secho(f"ERROR: {message}", err=True, fg='red')
    sys.exit(code)


def load_session(path: str, service_config: Optional[ServiceConfig] = None) -> StaticSessionContext:
    """Load a session document, exiting with an error message on failure."""
    try:
        return StaticSessionContext.from_file(Path(path), service_config)
    except (OSError, json.JSONDecodeError, KeyError, ValueError, FeatureGalleryError) as e:
        fail(f"Failed to load session {path}: {e}")


def close_session(session: StaticSessionContext) -> None:
    """Release the session's feature service, if it holds one."""
    close = getattr(session.feature_service, 'close', None)
    if callable(close):
        close()
