"""Feature Gallery.

Cascading assembly, track and feature selection with a region-chunked
feature search, and aggregation of the images or text descriptions attached
to a feature and its sub-features.
"""

__version__ = "1.0.0"
__author__ = "Austin P. Morrissey"

from .content_aggregator import ContentAggregator, collect_images, collect_text_content
from .dedupe import dedupe
from .feature_search import RegionChunkedSearcher
from .models import FeatureContent, SearchOutcome, SearchResult, SelectionState, SimpleFeature
from .selection import SelectionStateMachine, ViewKind
from .session import StaticSessionContext

__all__ = [
    "ContentAggregator",
    "FeatureContent",
    "RegionChunkedSearcher",
    "SearchOutcome",
    "SearchResult",
    "SelectionState",
    "SelectionStateMachine",
    "SimpleFeature",
    "StaticSessionContext",
    "ViewKind",
    "collect_images",
    "collect_text_content",
    "dedupe",
]
