"""Shared fixtures: small in-memory sessions and feature services."""

import asyncio
from typing import Any, Dict, List

import pytest

from feature_gallery.error_handler import ErrorHandler
from feature_gallery.models import AdapterConfig, Assembly, Region, TrackConfig
from feature_gallery.session import InMemoryFeatureService, StaticSessionContext

GFF_ADAPTER = {'type': 'Gff3TabixAdapter', 'gffGzLocation': {'uri': 'genes.gff3.gz'}, 'index': {'location': {'uri': 'genes.gff3.gz.tbi'}}}


def make_track(track_id: str = 'genes',
               adapter: Dict[str, Any] = None,
               assembly_names: List[str] = None,
               text_search: bool = False) -> TrackConfig:
    return TrackConfig(
        track_id=track_id,
        name=track_id.title(),
        assembly_names=assembly_names or ['hg38'],
        adapter=AdapterConfig.from_dict(adapter or GFF_ADAPTER),
        text_search_adapter={'type': 'TrixTextSearchAdapter'} if text_search else None,
    )


def make_session(features: List[Dict[str, Any]] = None,
                 regions: List[Region] = None,
                 tracks: List[TrackConfig] = None,
                 text_index: Dict[str, List[Dict[str, Any]]] = None) -> StaticSessionContext:
    tracks = tracks or [make_track()]
    service = InMemoryFeatureService()
    for track in tracks:
        service.add_features(track.adapter.to_dict(), features or [])
    return StaticSessionContext(
        assemblies=[Assembly('hg38', regions or [Region('chr1', 0, 3_000_000)])],
        tracks=tracks,
        feature_service=service,
        session_id='test-session',
        text_index=text_index,
    )


class SlowFeatureService:
    """Feature service whose calls wait until released."""

    def __init__(self, features=None):
        self.features = features or []
        self.calls = []
        self._release = None

    @property
    def release(self) -> asyncio.Event:
        # Created lazily so it binds to the running test loop
        if self._release is None:
            self._release = asyncio.Event()
        return self._release

    async def call(self, session_id, method, args):
        self.calls.append(args)
        await self.release.wait()
        return list(self.features)


class FailingFeatureService:
    """Feature service that fails for chosen chunk starts."""

    def __init__(self, features=None, fail_starts=()):
        self.features = features or []
        self.fail_starts = set(fail_starts)
        self.calls = []

    async def call(self, session_id, method, args):
        region = args['regions'][0]
        self.calls.append(region)
        if region['start'] in self.fail_starts:
            raise ConnectionError(f"service unavailable for {region['refName']}:{region['start']}")
        return [
            f for f in self.features
            if f.get('start', 0) < region['end'] and f.get('end', 0) > region['start']
        ]


@pytest.fixture
def error_handler():
    return ErrorHandler()
