"""
Feature search over one track of one assembly.

Searches try the track's text index first and fall back to paging through
the assembly's regions in fixed-size chunks, asking the feature service for
each chunk and filtering the returned features by substring match.
"""

import asyncio
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .config import SearchConfig
from .dedupe import dedupe_by
from .error_handler import AdapterError, ErrorHandler, ErrorType, TrackNotFoundError, get_error_handler
from .logging_config import LogTimer, get_logger
from .models import Assembly, Feature, Region, SearchMatch, SearchOutcome, SearchResult, TrackConfig
from .session import FEATURE_SERVICE_METHOD, SessionContext

logger = get_logger('search')

ContentExtractor = Callable[[Feature], Dict[str, Any]]

TIER_INDEX = 'index'
TIER_RANGE = 'range'

# Attributes compared against the query, in order
MATCH_FIELDS = (
    'id', 'name', 'type', 'gene', 'gene_name',
    'locus_tag', 'product', 'note', 'description', 'comment',
)


def _first_present(feature: Feature, keys: Tuple[str, ...]) -> Optional[Any]:
    for key in keys:
        value = feature.get(key)
        if value is not None and value != '':
            return value
    return None


def get_feature_id(feature: Feature) -> str:
    """Identity chain ``ID, id, Name, name`` then ``feature.id()``."""
    value = _first_present(feature, ('ID', 'id', 'Name', 'name'))
    if value is not None:
        return str(value)
    id_method = getattr(feature, 'id', None)
    if callable(id_method):
        return str(id_method())
    return ''


def get_feature_name(feature: Feature) -> str:
    """Name chain ``Name, name, ID, id`` then a placeholder."""
    value = _first_present(feature, ('Name', 'name', 'ID', 'id'))
    return str(value) if value is not None else "Unnamed feature"


def feature_matches(feature: Feature, query: str) -> bool:
    """Case-insensitive substring match over the searchable attributes."""
    needle = query.lower()
    candidates = [get_feature_id(feature), get_feature_name(feature)]
    for key in MATCH_FIELDS:
        value = feature.get(key)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            candidates.extend(str(v) for v in value)
        else:
            candidates.append(str(value))
    return any(needle in candidate.lower() for candidate in candidates)


def iter_chunks(region: Region, chunk_size: int) -> Iterator[Region]:
    """Split a region into consecutive windows, the last clipped to its end."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    start = region.start
    while start < region.end:
        end = min(start + chunk_size, region.end)
        yield Region(region.ref_name, start, end)
        start += chunk_size


def pad_match(match: SearchMatch, padding: int) -> Optional[Region]:
    """Widen an index hit into a query region, or None without a refName."""
    if not match.ref_name:
        return None
    end = match.end if match.end is not None else match.start + 1
    return Region(str(match.ref_name), max(0, match.start - padding), end + padding)


class _ResultCollector:
    """Accumulates results, enforcing the cap and per-list identity rules."""

    def __init__(self, limit: int):
        self.limit = limit
        self.results: List[SearchResult] = []
        self._seen_ids = set()
        self._seen_hits = set()

    @property
    def full(self) -> bool:
        return len(self.results) >= self.limit

    def add(self, result: SearchResult) -> bool:
        """Keep a result unless it repeats a hit already kept."""
        hit = (result.id, result.location)
        if hit in self._seen_hits:
            return False
        self._seen_hits.add(hit)

        if result.id in self._seen_ids:
            result = result.with_id(f"{result.name}@{result.location}")
            if result.id in self._seen_ids:
                return False
        self._seen_ids.add(result.id)
        self.results.append(result)
        return True


class RegionChunkedSearcher:
    """Bounded feature search with text-index-first, range-query fallback."""

    def __init__(self,
                 session: SessionContext,
                 config: Optional[SearchConfig] = None,
                 error_handler: Optional[ErrorHandler] = None):
        """
        Initialize searcher.

        Args:
            session: Host session used for assembly, track and service lookups
            config: Search limits; defaults apply when omitted
            error_handler: Where recovered per-chunk errors are recorded
        """
        self.session = session
        self.config = config or SearchConfig()
        self.error_handler = error_handler or get_error_handler()

    async def search(self,
                     assembly_id: str,
                     track_id: str,
                     query: str,
                     content_extractor: Optional[ContentExtractor] = None) -> SearchOutcome:
        """
        Search one track for features matching a query.

        Args:
            assembly_id: Assembly whose regions bound the search
            track_id: Track to search
            query: Free text, matched case-insensitively
            content_extractor: Optional hook whose output is merged into each
                result's extra fields

        Returns:
            SearchOutcome naming the tier that produced the results. Failures
            yield an empty outcome rather than raising.
        """
        term = (query or '').strip()
        if len(term) < self.config.min_query_length or not assembly_id or not track_id:
            return SearchOutcome(tier=TIER_RANGE)

        with LogTimer(f"Search '{term}' in {track_id}", logger):
            try:
                assembly = await self.session.resolve_assembly(assembly_id)
                track = self._resolve_track(track_id)

                results: List[SearchResult] = []
                tier = TIER_RANGE
                if track.has_text_search:
                    results = await self._search_text_index(assembly, track, term, content_extractor)
                    if results:
                        tier = TIER_INDEX
                    else:
                        logger.debug(f"Text index gave no hits for '{term}', falling back to range search")

                if not results:
                    results = await self._search_ranges(assembly, track, term, content_extractor)

            except Exception as e:
                self.error_handler.handle_error(
                    e,
                    operation="feature search",
                    item_id=f"{assembly_id}/{track_id}",
                    query=term
                )
                return SearchOutcome(tier=TIER_RANGE)

        results = dedupe_by([r for r in results if r.track_id == track_id], key=lambda r: r.id)
        results = results[:self.config.max_results]
        logger.info(f"Search '{term}' found {len(results)} result(s) via {tier} tier")
        return SearchOutcome(tier=tier, results=tuple(results))

    def _resolve_track(self, track_id: str) -> TrackConfig:
        track = self.session.resolve_track(track_id)
        if track is None:
            raise TrackNotFoundError(f"Unknown track: {track_id}")
        if track.adapter is None or not track.adapter.type:
            raise AdapterError(f"Track {track_id} has no adapter type")
        return track

    async def _search_text_index(self,
                                 assembly: Assembly,
                                 track: TrackConfig,
                                 term: str,
                                 content_extractor: Optional[ContentExtractor]) -> List[SearchResult]:
        """Resolve index hits to features. Any failure yields no results."""
        try:
            matches = await self.session.text_search(track, term, self.config.max_results)
        except Exception as e:
            logger.warning(f"Text index lookup failed for {track.track_id}: {e}")
            return []

        if not matches:
            return []

        logger.debug(f"Text index returned {len(matches)} match(es) for '{term}'")
        collector = _ResultCollector(self.config.max_results)

        for match in matches:
            if collector.full:
                break
            region = pad_match(match, self.config.match_padding)
            if region is None:
                continue
            features = await self._fetch(assembly, track, region)
            for feature in features:
                if collector.full:
                    break
                self._collect(collector, feature, region, track, content_extractor)

        return collector.results

    async def _search_ranges(self,
                             assembly: Assembly,
                             track: TrackConfig,
                             term: str,
                             content_extractor: Optional[ContentExtractor]) -> List[SearchResult]:
        """Page through every region in chunks until enough matches are found."""
        collector = _ResultCollector(self.config.max_results)
        chunks_searched = 0

        for region in assembly.regions:
            if collector.full:
                break
            for chunk in iter_chunks(region, self.config.chunk_size):
                if collector.full:
                    break
                chunks_searched += 1
                features = await self._fetch(assembly, track, chunk)
                for feature in features:
                    if collector.full:
                        break
                    try:
                        if not feature_matches(feature, term):
                            continue
                    except Exception as e:
                        logger.debug(f"Error matching feature in {chunk}: {e}")
                        continue
                    self._collect(collector, feature, chunk, track, content_extractor)

        logger.debug(f"Range search scanned {chunks_searched} chunk(s) of {track.track_id}")
        return collector.results

    async def _fetch(self, assembly: Assembly, track: TrackConfig, region: Region) -> List[Feature]:
        """One feature-service call; failures and timeouts give an empty list."""
        args = {
            'sessionId': self.session.session_id,
            'regions': [region.to_query(assembly.name)],
            'adapterConfig': track.adapter.to_dict(),
        }
        try:
            call = self.session.call_feature_service(FEATURE_SERVICE_METHOD, args)
            timeout = self.config.chunk_timeout_seconds
            if timeout is not None:
                features = await asyncio.wait_for(call, timeout=timeout)
            else:
                features = await call
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                e = TimeoutError(f"{FEATURE_SERVICE_METHOD} exceeded {self.config.chunk_timeout_seconds}s")
            self.error_handler.handle_error(
                e,
                operation="fetch features",
                item_id=str(region),
                error_type=ErrorType.NETWORK_TIMEOUT if isinstance(e, TimeoutError) else ErrorType.FEATURE_RETRIEVAL
            )
            return []

        return list(features) if isinstance(features, (list, tuple)) else []

    def _collect(self,
                 collector: _ResultCollector,
                 feature: Feature,
                 region: Region,
                 track: TrackConfig,
                 content_extractor: Optional[ContentExtractor]) -> None:
        try:
            collector.add(self.to_result(feature, region, track.track_id, content_extractor))
        except Exception as e:
            self.error_handler.handle_error(
                e,
                operation="shape search result",
                item_id=str(region),
                error_type=ErrorType.CONTENT_EXTRACTION
            )

    @staticmethod
    def to_result(feature: Feature,
                  region: Region,
                  track_id: str,
                  content_extractor: Optional[ContentExtractor] = None) -> SearchResult:
        """Shape a feature into a display row, located on the queried region."""
        start = feature.get('start')
        end = feature.get('end')
        location = (
            f"{region.ref_name}:"
            f"{start if start is not None else region.start}-"
            f"{end if end is not None else region.end}"
        )
        extra = dict(content_extractor(feature) or {}) if content_extractor else {}
        feature_type = feature.get('type')
        return SearchResult(
            id=get_feature_id(feature),
            name=get_feature_name(feature),
            type=str(feature_type) if feature_type else "Unknown",
            location=location,
            track_id=track_id,
            extra=extra,
        )
