"""HTTP client for the remote feature-retrieval service."""

import asyncio
import time
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import ServiceConfig
from .error_handler import FeatureServiceError
from .logging_config import get_logger, log_api_call
from .models import SimpleFeature

logger = get_logger('network')

RETRY_ON_STATUS = [408, 429, 500, 502, 503, 504]


class HttpFeatureService:
    """Feature-retrieval service reached over HTTP.

    Requests are POSTed as JSON to ``{base_url}/rpc/{method}``; the response
    body must be a JSON list of feature objects. Calls block, so the async
    entry point runs them in a worker thread.
    """

    def __init__(self, base_url: str, config: Optional[ServiceConfig] = None):
        """
        Initialize the client.

        Args:
            base_url: Service root, e.g. ``http://localhost:8999``
            config: Timeout and retry settings
        """
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip('/')
        self.config = config or ServiceConfig(base_url=base_url)
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.config.retry_attempts,
            backoff_factor=self.config.backoff_factor,
            status_forcelist=RETRY_ON_STATUS,
            allowed_methods=["GET", "POST"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({'Content-Type': 'application/json'})

        return session

    def call_sync(self, session_id: str, method: str, args: Dict[str, Any]) -> List[SimpleFeature]:
        """
        Perform one RPC call and decode the returned features.

        Raises:
            FeatureServiceError: On transport errors or malformed payloads
        """
        url = f"{self.base_url}/rpc/{method}"
        payload = dict(args)
        payload.setdefault('sessionId', session_id)

        start_time = time.time()
        try:
            response = self.session.post(url, json=payload, timeout=self.config.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            log_api_call('feature_service', method, _summarize(payload), time.time() - start_time, False)
            raise TimeoutError(f"{method} timed out after {self.config.timeout_seconds}s") from e
        except (requests.RequestException, ValueError) as e:
            log_api_call('feature_service', method, _summarize(payload), time.time() - start_time, False)
            raise FeatureServiceError(f"{method} failed: {e}") from e

        log_api_call('feature_service', method, _summarize(payload), time.time() - start_time, True)

        if isinstance(data, dict) and 'features' in data:
            data = data['features']
        if not isinstance(data, list):
            raise FeatureServiceError(f"{method} returned {type(data).__name__}, expected a list")

        return [SimpleFeature(item) for item in data if isinstance(item, dict)]

    async def call(self, session_id: str, method: str, args: Dict[str, Any]) -> List[SimpleFeature]:
        """Async wrapper around :meth:`call_sync`."""
        return await asyncio.to_thread(self.call_sync, session_id, method, args)

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _summarize(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the region list for log lines."""
    regions = payload.get('regions') or []
    return {'regions': [f"{r.get('refName')}:{r.get('start')}-{r.get('end')}" for r in regions]}
