"""Host session access: assemblies, tracks and the feature service."""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .config import ServiceConfig
from .error_handler import AssemblyNotFoundError, SessionError
from .logging_config import get_logger
from .models import Assembly, Feature, SearchMatch, SimpleFeature, TrackConfig, TrackInfo
from .network import HttpFeatureService

logger = get_logger('session')

COMPATIBLE_ADAPTER_TYPES = (
    'Gff3Adapter',
    'Gff3TabixAdapter',
    'GtfAdapter',
    'BedAdapter',
    'GeneFeaturesAdapter',
)

FEATURE_SERVICE_METHOD = 'CoreGetFeatures'


class FeatureService(Protocol):
    """Anything that can answer feature-retrieval RPC calls."""

    async def call(self, session_id: str, method: str, args: Dict[str, Any]) -> List[Feature]:
        ...


class SessionContext(Protocol):
    """Everything the selection and search code needs from the host."""

    session_id: str

    async def resolve_assembly(self, assembly_id: str) -> Assembly:
        ...

    def resolve_track(self, track_id: str) -> Optional[TrackConfig]:
        ...

    async def call_feature_service(self, method: str, args: Dict[str, Any]) -> List[Feature]:
        ...

    async def text_search(self, track: TrackConfig, query: str, limit: int) -> List[SearchMatch]:
        ...

    def assembly_names(self) -> List[str]:
        ...

    def tracks_for_assembly(self, assembly_name: str) -> List[TrackConfig]:
        ...


def is_compatible_adapter(adapter_type: Optional[str]) -> bool:
    return isinstance(adapter_type, str) and adapter_type in COMPATIBLE_ADAPTER_TYPES


def extract_track_info(track: TrackConfig) -> TrackInfo:
    """Summarize a track for selectors."""
    adapter_type = track.adapter.type if track.adapter else ''
    return TrackInfo(
        track_id=track.track_id,
        name=str(track.name or track.track_id or 'Unnamed Track'),
        adapter_type=adapter_type,
        has_index=bool(track.adapter and track.adapter.has_index),
        is_compatible=is_compatible_adapter(adapter_type),
    )


def list_assemblies(session: SessionContext) -> List[Dict[str, str]]:
    """Assembly names with display labels, empty when the session fails."""
    try:
        names = session.assembly_names()
    except Exception as e:
        logger.error(f"Error listing assemblies: {e}")
        return []
    return [{'name': name, 'displayName': _display_name(session, name)} for name in names]


def list_tracks(session: SessionContext, assembly_name: Optional[str],
                compatible_only: bool = True) -> List[TrackInfo]:
    """Tracks bound to an assembly, optionally only selectable ones."""
    if not assembly_name:
        return []
    try:
        tracks = session.tracks_for_assembly(assembly_name)
    except Exception as e:
        logger.error(f"Error listing tracks for {assembly_name}: {e}")
        return []
    infos = [extract_track_info(t) for t in tracks]
    if compatible_only:
        infos = [info for info in infos if info.is_compatible]
    return infos


def _display_name(session: SessionContext, name: str) -> str:
    getter = getattr(session, 'get_assembly', None)
    assembly = getter(name) if callable(getter) else None
    return assembly.label if assembly else name


def _adapter_key(adapter_config: Dict[str, Any]) -> str:
    return json.dumps(adapter_config, sort_keys=True, default=str)


def _overlaps(feature: Feature, ref_name: str, start: int, end: int) -> bool:
    f_ref = feature.get('refName')
    if f_ref is not None and f_ref != ref_name:
        return False
    f_start = int(feature.get('start') or 0)
    f_end = int(feature.get('end') or f_start)
    return f_start < end and f_end > start


class InMemoryFeatureService:
    """Feature service backed by preloaded features, keyed by adapter config."""

    def __init__(self):
        self._features: Dict[str, List[SimpleFeature]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add_features(self, adapter_config: Dict[str, Any], features: Iterable[Any]) -> None:
        key = _adapter_key(adapter_config)
        bucket = self._features.setdefault(key, [])
        for feature in features:
            bucket.append(feature if isinstance(feature, SimpleFeature) else SimpleFeature(feature))

    async def call(self, session_id: str, method: str, args: Dict[str, Any]) -> List[Feature]:
        if method != FEATURE_SERVICE_METHOD:
            raise SessionError(f"Unsupported RPC method: {method}")
        self.calls.append(args)
        features = self._features.get(_adapter_key(args.get('adapterConfig') or {}), [])
        found = []
        for region in args.get('regions') or []:
            found.extend(
                f for f in features
                if _overlaps(f, region['refName'], int(region['start']), int(region['end']))
            )
        return found


class StaticSessionContext:
    """Session built from plain data: assemblies, tracks and a feature service.

    An optional text index maps track ids to entries of the form
    ``{"name": ..., "refName": ..., "start": ..., "end": ...}``; lookups are
    case-insensitive substring matches on ``name`` and ``aliases``.
    """

    def __init__(self,
                 assemblies: Iterable[Assembly],
                 tracks: Iterable[TrackConfig],
                 feature_service: Optional[FeatureService] = None,
                 session_id: str = "session",
                 text_index: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.session_id = session_id
        self._assemblies = {a.name: a for a in assemblies}
        self._tracks = {t.track_id: t for t in tracks}
        self.feature_service = feature_service
        self.text_index = text_index or {}

    async def resolve_assembly(self, assembly_id: str) -> Assembly:
        assembly = self._assemblies.get(assembly_id)
        if assembly is None:
            raise AssemblyNotFoundError(f"Unknown assembly: {assembly_id}")
        return assembly

    def get_assembly(self, assembly_id: str) -> Optional[Assembly]:
        return self._assemblies.get(assembly_id)

    def resolve_track(self, track_id: str) -> Optional[TrackConfig]:
        return self._tracks.get(track_id)

    async def call_feature_service(self, method: str, args: Dict[str, Any]) -> List[Feature]:
        if self.feature_service is None:
            raise SessionError("No feature service configured for this session")
        return await self.feature_service.call(self.session_id, method, args)

    async def text_search(self, track: TrackConfig, query: str, limit: int) -> List[SearchMatch]:
        entries = self.text_index.get(track.track_id)
        if not entries:
            return []
        # Yield once so the lookup behaves like a remote call
        await asyncio.sleep(0)
        needle = query.lower()
        matches = []
        for entry in entries:
            names = [entry.get('name') or ''] + list(entry.get('aliases') or [])
            if any(needle in str(n).lower() for n in names):
                matches.append(SearchMatch.from_dict(entry))
                if len(matches) >= limit:
                    break
        return matches

    def assembly_names(self) -> List[str]:
        return list(self._assemblies)

    def tracks_for_assembly(self, assembly_name: str) -> List[TrackConfig]:
        return [t for t in self._tracks.values() if assembly_name in t.assembly_names]

    @classmethod
    def from_dict(cls, data: Dict[str, Any],
                  service_config: Optional[ServiceConfig] = None) -> 'StaticSessionContext':
        """
        Build a session from a JSON-style document.

        Inline ``features`` (keyed by track id) are served from memory;
        otherwise ``serviceUrl`` (or ``service_config.base_url``) selects an
        HTTP feature service.
        """
        assemblies = [Assembly.from_dict(a) for a in data.get('assemblies', [])]
        tracks = [TrackConfig.from_dict(t) for t in data.get('tracks', [])]

        service: Optional[FeatureService] = None
        inline = data.get('features')
        if inline:
            memory = InMemoryFeatureService()
            by_id = {t.track_id: t for t in tracks}
            for track_id, features in inline.items():
                track = by_id.get(track_id)
                if track is None or track.adapter is None:
                    logger.warning(f"Skipping inline features for unknown track {track_id}")
                    continue
                memory.add_features(track.adapter.to_dict(), features)
            service = memory
        else:
            base_url = data.get('serviceUrl') or (service_config.base_url if service_config else None)
            if base_url:
                service = HttpFeatureService(base_url, service_config)

        return cls(
            assemblies=assemblies,
            tracks=tracks,
            feature_service=service,
            session_id=str(data.get('sessionId') or 'session'),
            text_index=data.get('textIndex'),
        )

    @classmethod
    def from_file(cls, path: Path,
                  service_config: Optional[ServiceConfig] = None) -> 'StaticSessionContext':
        """Load a session document from a JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data, service_config)
