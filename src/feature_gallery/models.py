"""Data models for the feature gallery."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

# Value returned by Feature.get
AttributeValue = Union[str, List[str], None]


@runtime_checkable
class Feature(Protocol):
    """Minimal attribute access every annotation feature provides."""

    def get(self, key: str) -> Any:
        ...


class FeatureType(str, Enum):
    """Coarse classification of a selected feature."""
    GENE = "GENE"
    NON_GENE = "NON_GENE"

    @classmethod
    def from_feature_type(cls, feature_type: Optional[str]) -> 'FeatureType':
        """Map a raw feature ``type`` attribute onto GENE/NON_GENE."""
        return cls.GENE if feature_type == "gene" else cls.NON_GENE


@dataclass(frozen=True)
class Region:
    """Contiguous interval on a reference sequence."""

    ref_name: str
    start: int
    end: int

    def to_query(self, assembly_name: str) -> Dict[str, Any]:
        """Region payload understood by the feature-retrieval service."""
        return {
            'refName': self.ref_name,
            'start': self.start,
            'end': self.end,
            'assemblyName': assembly_name,
        }

    def __str__(self) -> str:
        return f"{self.ref_name}:{self.start}-{self.end}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Region':
        return cls(
            ref_name=str(data.get('refName') or data.get('ref_name') or ''),
            start=int(data.get('start') or 0),
            end=int(data.get('end') or 0),
        )


@dataclass
class Assembly:
    """A reference genome and the regions that bound its search space."""

    name: str
    regions: List[Region] = field(default_factory=list)
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        """Friendly name for selectors."""
        return str(self.display_name or self.name or "Unknown Assembly")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Assembly':
        return cls(
            name=str(data['name']),
            regions=[Region.from_dict(r) for r in data.get('regions', [])],
            display_name=data.get('displayName') or data.get('display_name'),
        )


@dataclass
class AdapterConfig:
    """Descriptor of the format a track's features are read from."""

    type: str
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_index(self) -> bool:
        return bool(self.options.get('index'))

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.options)
        data['type'] = self.type
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['AdapterConfig']:
        if not isinstance(data, dict) or not data.get('type'):
            return None
        options = {k: v for k, v in data.items() if k != 'type'}
        return cls(type=str(data['type']), options=options)


@dataclass
class TrackConfig:
    """Track configuration as resolved from the host session."""

    track_id: str
    name: Optional[str] = None
    assembly_names: List[str] = field(default_factory=list)
    adapter: Optional[AdapterConfig] = None
    text_search_adapter: Optional[Dict[str, Any]] = None

    @property
    def has_text_search(self) -> bool:
        return bool(self.text_search_adapter)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrackConfig':
        assembly_names = data.get('assemblyNames', data.get('assembly_names', []))
        if isinstance(assembly_names, str):
            assembly_names = [assembly_names]
        text_searching = data.get('textSearching') or {}
        return cls(
            track_id=str(data.get('trackId') or data.get('track_id') or ''),
            name=data.get('name'),
            assembly_names=[n for n in assembly_names if isinstance(n, str)],
            adapter=AdapterConfig.from_dict(data.get('adapter')),
            text_search_adapter=text_searching.get('textSearchAdapter'),
        )


@dataclass(frozen=True)
class TrackInfo:
    """Normalized track summary for selectors."""

    track_id: str
    name: str
    adapter_type: str
    has_index: bool
    is_compatible: bool


@dataclass(frozen=True)
class SearchMatch:
    """Coarse hit location returned by a text index."""

    ref_name: Optional[str]
    start: int = 0
    end: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchMatch':
        """Accept the several shapes text indexes report locations in."""
        loc = data.get('loc') or {}
        location = data.get('location') if isinstance(data.get('location'), dict) else {}
        ref_name = (
            data.get('refName') or data.get('ref')
            or loc.get('refName') or location.get('refName')
        )
        start = data.get('start', loc.get('start', location.get('start', 0)))
        end = data.get('end', loc.get('end', location.get('end')))
        return cls(
            ref_name=ref_name,
            start=int(start or 0),
            end=int(end) if end is not None else None,
        )


@dataclass(frozen=True)
class SearchResult:
    """A feature found by a search, shaped for list display."""

    id: str
    name: str
    type: str
    location: str
    track_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a core field or a content hint."""
        if key in ('id', 'name', 'type', 'location', 'track_id'):
            return getattr(self, key)
        return self.extra.get(key, default)

    def with_id(self, new_id: str) -> 'SearchResult':
        return replace(self, id=new_id)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'location': self.location,
            'trackId': self.track_id,
        })
        return data


@dataclass(frozen=True)
class SearchOutcome:
    """Result of one search pipeline run and the tier that produced it."""

    tier: str  # 'index' or 'range'
    results: Tuple[SearchResult, ...] = ()

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[SearchResult]:
        return iter(self.results)


@dataclass(frozen=True)
class FeatureContent:
    """Aligned comma-joined content strings for a selected feature.

    For image galleries ``primary`` holds image URLs, ``labels`` the image
    groups and ``types`` the image tags. For textual descriptions they hold
    markdown URLs, descriptions and content types.
    """

    primary: str = ""
    labels: str = ""
    types: str = ""

    @property
    def is_empty(self) -> bool:
        return self.primary.strip() == ""


@dataclass(frozen=True)
class SelectionState:
    """Immutable snapshot of a view's selections."""

    selected_assembly_id: Optional[str] = None
    selected_track_id: Optional[str] = None
    selected_feature_id: Optional[str] = None
    selected_feature_type: FeatureType = FeatureType.GENE
    search_term: str = ""
    search_results: Tuple[SearchResult, ...] = ()
    is_searching: bool = False
    is_loading_tracks: bool = False
    is_loading_features: bool = False
    content: FeatureContent = FeatureContent()

    def evolve(self, **changes: Any) -> 'SelectionState':
        return replace(self, **changes)


class SimpleFeature:
    """Dict-backed feature, the shape feature services hand back."""

    def __init__(self, data: Dict[str, Any], parent: Optional['SimpleFeature'] = None):
        self._data = dict(data)
        self._parent = parent
        subfeatures = self._data.get('subfeatures')
        if isinstance(subfeatures, list):
            self._data['subfeatures'] = [
                sub if isinstance(sub, SimpleFeature) else SimpleFeature(sub, parent=self)
                for sub in subfeatures
                if isinstance(sub, (dict, SimpleFeature))
            ]

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def id(self) -> str:
        unique_id = self._data.get('uniqueId')
        if unique_id is not None:
            return str(unique_id)
        return f"{self._data.get('refName', '')}:{self._data.get('start', '')}-{self._data.get('end', '')}"

    def parent(self) -> Optional['SimpleFeature']:
        return self._parent

    def children(self) -> List['SimpleFeature']:
        return list(self._data.get('subfeatures') or [])

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self._data)
        if 'subfeatures' in data:
            data['subfeatures'] = [sub.to_dict() for sub in data['subfeatures']]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimpleFeature':
        return cls(data)

    def __repr__(self) -> str:
        return f"SimpleFeature({self.id()!r})"
