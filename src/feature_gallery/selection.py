"""
Selection state for gallery and text-description views.

The state machine owns the assembly, track, feature and search-term
selections of one view. Changing an upstream choice resets everything
downstream of it, and search results that come back after such a change
are dropped.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .config import Config
from .content_aggregator import IMAGE_MODE, TEXT_MODE, ContentAggregator, ContentMode, make_content_extractor
from .dedupe import dedupe, split_list
from .error_handler import ErrorHandler, get_error_handler
from .feature_search import RegionChunkedSearcher, get_feature_id
from .logging_config import get_logger
from .models import FeatureContent, FeatureType, SearchOutcome, SearchResult, SelectionState, TrackInfo
from .session import SessionContext, list_assemblies, list_tracks

logger = get_logger('selection')

Observer = Callable[[SelectionState], None]


class ViewKind(Enum):
    """The two views that share the selection machinery."""
    IMAGE_GALLERY = "Image Gallery"
    TEXTUAL_DESCRIPTIONS = "Text Descriptions"

    @property
    def mode(self) -> ContentMode:
        return IMAGE_MODE if self is ViewKind.IMAGE_GALLERY else TEXT_MODE


class SelectionStateMachine:
    """Cascading selections with stale-result protection.

    Every action replaces :attr:`state` with a new immutable snapshot and
    notifies subscribers when the snapshot changed. A generation counter is
    bumped by every upstream change; a search commits its results only if
    the counter still holds the value it captured at start.
    """

    def __init__(self,
                 session: SessionContext,
                 searcher: Optional[RegionChunkedSearcher] = None,
                 config: Optional[Config] = None,
                 kind: ViewKind = ViewKind.IMAGE_GALLERY,
                 error_handler: Optional[ErrorHandler] = None,
                 display_name: Optional[str] = None,
                 content_extractor: Optional[Callable[[Any], Dict[str, str]]] = None,
                 recursive_content: bool = False):
        """
        Initialize the state machine.

        Args:
            session: Host session for assembly and track lookups
            searcher: Feature searcher, built from ``config`` when omitted
            config: Search and view settings
            kind: Which view this machine backs
            error_handler: Shared error handler
            display_name: Overrides the view's base title
            content_extractor: Per-result content hook used during searches
            recursive_content: Build the default hook over whole feature trees
        """
        self.session = session
        self.config = config or Config.default()
        self.kind = kind
        self.error_handler = error_handler or get_error_handler()
        self.searcher = searcher or RegionChunkedSearcher(session, self.config.search, self.error_handler)
        self.mode = kind.mode.with_attribute_names(self._view_config.attribute_names)
        self.aggregator = ContentAggregator(self.mode, self.error_handler)
        self.content_extractor = content_extractor or make_content_extractor(
            self.mode, self.error_handler, recursive=recursive_content
        )
        self.display_name = display_name

        self._state = SelectionState()
        self._generation = 0
        self._observers: List[Observer] = []

    # ------------------------------------------------------------------
    # State plumbing

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register a callback for state changes; returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _replace(self, new_state: SelectionState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        for callback in list(self._observers):
            try:
                callback(new_state)
            except Exception as e:
                logger.error(f"State observer {callback!r} failed: {e}")

    def _bump(self) -> int:
        self._generation += 1
        return self._generation

    # ------------------------------------------------------------------
    # Actions

    def set_selected_assembly(self, assembly_id: Optional[str]) -> None:
        """Select an assembly and reset the track, feature and search."""
        self._bump()
        self._replace(SelectionState(
            selected_assembly_id=assembly_id or None,
            is_loading_tracks=self._state.is_loading_tracks,
            is_loading_features=self._state.is_loading_features,
        ))
        logger.debug(f"Assembly selected: {assembly_id}")

    def set_selected_track(self, track_id: Optional[str]) -> None:
        """Select a track and reset the feature and search."""
        if track_id and not self._state.selected_assembly_id:
            logger.warning(f"Ignoring track {track_id}: no assembly selected")
            return
        self._bump()
        self._replace(self._state.evolve(
            selected_track_id=track_id or None,
            selected_feature_id=None,
            selected_feature_type=FeatureType.GENE,
            search_term="",
            search_results=(),
            is_searching=False,
            content=FeatureContent(),
        ))
        logger.debug(f"Track selected: {track_id}")

    async def set_search_term(self, term: Optional[str]) -> Optional[SearchOutcome]:
        """
        Store the search term and act on its length.

        A term of at least the minimum length starts a search; an empty term
        clears results; anything in between only updates the stored text.

        Returns:
            The search outcome when a search ran, otherwise None
        """
        term = term or ""
        trimmed = term.strip()

        if not trimmed:
            self._bump()
            self._replace(self._state.evolve(
                search_term=term,
                search_results=(),
                is_searching=False,
                selected_feature_id=None,
                selected_feature_type=FeatureType.GENE,
                content=FeatureContent(),
            ))
            return None

        self._replace(self._state.evolve(search_term=term))

        if len(trimmed) < self.config.search.min_query_length:
            return None

        return await self.search_features()

    async def search_features(self) -> SearchOutcome:
        """Run a search for the stored term and commit it if still current."""
        generation = self._bump()
        snapshot = self._state
        self._replace(snapshot.evolve(
            is_searching=True,
            search_results=(),
            selected_feature_id=None,
            selected_feature_type=FeatureType.GENE,
            content=FeatureContent(),
        ))

        try:
            outcome = await self.searcher.search(
                snapshot.selected_assembly_id,
                snapshot.selected_track_id,
                snapshot.search_term,
                self.content_extractor,
            )
        except Exception as e:
            self.error_handler.handle_error(e, operation="search features", item_id=snapshot.search_term)
            outcome = SearchOutcome(tier='range')

        if generation != self._generation:
            logger.debug(
                f"Discarding {len(outcome)} stale result(s) for '{snapshot.search_term}' "
                f"(generation {generation}, now {self._generation})"
            )
            return outcome

        self._replace(self._state.evolve(
            is_searching=False,
            search_results=outcome.results,
            selected_feature_id=None,
            selected_feature_type=FeatureType.GENE,
            content=FeatureContent(),
        ))
        return outcome

    def set_selected_feature(self,
                             feature_id: Optional[str],
                             feature_type: Optional[FeatureType] = None,
                             content: Optional[FeatureContent] = None) -> None:
        """
        Select a feature, taking its content from the caller or the results.

        Args:
            feature_id: Feature to select; None clears the selection
            feature_type: Overrides the type inferred from the result
            content: Content to show; looked up in the results when omitted
        """
        if not feature_id:
            self.clear_feature()
            return

        if not self._state.selected_track_id:
            logger.warning(f"Ignoring feature {feature_id}: no track selected")
            return

        result = self._find_result(feature_id)

        if content is None:
            content = self.mode.from_mapping(result.to_dict()) if result else FeatureContent()

        if feature_type is None:
            feature_type = FeatureType.from_feature_type(result.type) if result else FeatureType.GENE

        self._replace(self._state.evolve(
            selected_feature_id=feature_id,
            selected_feature_type=feature_type,
            content=content,
        ))

    def update_feature(self, feature: Any) -> None:
        """Select a feature object directly, aggregating content from its tree."""
        if feature is None or not callable(getattr(feature, 'get', None)):
            return

        feature_id = get_feature_id(feature)
        if not feature_id:
            return
        if not self._state.selected_track_id:
            logger.warning(f"Ignoring feature {feature_id}: no track selected")
            return

        self._replace(self._state.evolve(
            selected_feature_id=feature_id,
            selected_feature_type=FeatureType.from_feature_type(feature.get('type')),
            content=self.aggregator.aggregate(feature),
        ))

    def clear_feature(self) -> None:
        self._replace(self._state.evolve(
            selected_feature_id=None,
            selected_feature_type=FeatureType.GENE,
            content=FeatureContent(),
        ))

    def clear_search(self) -> None:
        """Drop the term, the results and the selected feature."""
        self._bump()
        self._replace(self._state.evolve(
            search_term="",
            search_results=(),
            is_searching=False,
            selected_feature_id=None,
            selected_feature_type=FeatureType.GENE,
            content=FeatureContent(),
        ))

    def clear_selections(self) -> None:
        """Reset everything. Safe to call repeatedly."""
        self._bump()
        self._replace(SelectionState(
            is_loading_tracks=self._state.is_loading_tracks,
            is_loading_features=self._state.is_loading_features,
        ))

    def set_loading_tracks(self, flag: bool) -> None:
        self._replace(self._state.evolve(is_loading_tracks=bool(flag)))

    def set_loading_features(self, flag: bool) -> None:
        self._replace(self._state.evolve(is_loading_features=bool(flag)))

    # ------------------------------------------------------------------
    # Derived views

    @property
    def _view_config(self):
        return self.config.gallery if self.kind is ViewKind.IMAGE_GALLERY else self.config.text

    def _find_result(self, feature_id: str) -> Optional[SearchResult]:
        for result in self._state.search_results:
            if result.id == feature_id:
                return result
        return None

    @property
    def has_search_term(self) -> bool:
        return bool(self._state.search_term)

    @property
    def has_search_results(self) -> bool:
        return len(self._state.search_results) > 0

    @property
    def can_search(self) -> bool:
        return bool(self._state.selected_track_id) and not self._state.is_searching

    @property
    def is_ready(self) -> bool:
        return not (self._state.is_loading_tracks or self._state.is_loading_features)

    @property
    def has_content(self) -> bool:
        return not self._state.content.is_empty

    @property
    def base_display_name(self) -> str:
        if self.display_name:
            return self.display_name
        return self._view_config.default_display_name or self.kind.value

    @property
    def display_title(self) -> str:
        if self._state.selected_feature_id:
            return f"{self.base_display_name} for {self._state.selected_feature_id}"
        return self.base_display_name

    @property
    def selected_feature(self) -> Optional[SearchResult]:
        if not self._state.selected_feature_id:
            return None
        return self._find_result(self._state.selected_feature_id)

    @property
    def max_items(self) -> int:
        return self._view_config.max_items

    @property
    def deduplicated_content(self) -> List[str]:
        """Unique primary content items, limited to ``max_items`` when set."""
        items = dedupe(split_list(self._state.content.primary))
        if self.max_items > 0:
            items = items[:self.max_items]
        return items

    @property
    def content_dict(self) -> Dict[str, str]:
        return self.mode.as_dict(self._state.content)

    @property
    def available_assemblies(self) -> List[Dict[str, str]]:
        return list_assemblies(self.session)

    @property
    def available_tracks(self) -> List[TrackInfo]:
        return list_tracks(self.session, self._state.selected_assembly_id)

    @property
    def selected_track(self) -> Optional[TrackInfo]:
        track_id = self._state.selected_track_id
        if not track_id:
            return None
        for track in self.available_tracks:
            if track.track_id == track_id:
                return track
        return None
