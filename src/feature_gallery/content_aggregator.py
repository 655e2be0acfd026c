"""Collect image and text content from a feature and its sub-features."""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from .dedupe import split_list
from .error_handler import ErrorHandler, ErrorType, get_error_handler
from .logging_config import get_logger
from .models import Feature, FeatureContent

logger = get_logger('content')

NONE_SENTINEL = "none"


@dataclass(frozen=True)
class ContentMode:
    """Which attributes feed one kind of content, and their fallbacks."""

    name: str
    primary_keys: Tuple[str, ...]
    label_keys: Tuple[str, ...]
    type_keys: Tuple[str, ...]
    default_label: str
    default_type: str
    field_names: Tuple[str, str, str]

    def as_dict(self, content: FeatureContent) -> Dict[str, str]:
        """Name the three content strings the way this mode's views expect."""
        primary, labels, types = self.field_names
        return {primary: content.primary, labels: content.labels, types: content.types}

    def from_mapping(self, data: Dict[str, Any]) -> FeatureContent:
        """Inverse of :meth:`as_dict`, tolerant of missing keys and lists."""
        primary, labels, types = self.field_names
        return FeatureContent(
            primary=_as_text(data.get(primary)),
            labels=_as_text(data.get(labels)),
            types=_as_text(data.get(types)),
        )

    def with_attribute_names(self, attribute_names: Optional[Dict[str, str]]) -> 'ContentMode':
        """
        Copy of this mode reading from configured attribute names.

        Args:
            attribute_names: Maps a field name (see ``field_names``) to a
                comma-separated list of feature attributes to try in order.
                Fields left out keep their built-in keys.

        Returns:
            The adjusted mode, or this mode when nothing is overridden
        """
        if not attribute_names:
            return self

        keys = [self.primary_keys, self.label_keys, self.type_keys]
        for i, field_name in enumerate(self.field_names):
            names = parse_attribute_list(attribute_names.get(field_name))
            if names:
                keys[i] = tuple(names)

        unknown = set(attribute_names) - set(self.field_names)
        if unknown:
            logger.warning(f"Ignoring attribute names for unknown {self.name} fields: {sorted(unknown)}")

        return replace(self, primary_keys=keys[0], label_keys=keys[1], type_keys=keys[2])


IMAGE_MODE = ContentMode(
    name="images",
    primary_keys=("image", "images"),
    label_keys=("image_group",),
    type_keys=("image_tag",),
    default_label="unlabeled",
    default_type="unknown",
    field_names=("images", "labels", "types"),
)

TEXT_MODE = ContentMode(
    name="text",
    primary_keys=("markdown_urls", "markdown_url"),
    label_keys=("descriptions", "description"),
    type_keys=("content_types", "content_type"),
    default_label="no description",
    default_type="markdown",
    field_names=("markdown_urls", "descriptions", "content_types"),
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def parse_attribute_list(value: Any) -> List[str]:
    """
    Turn a raw attribute into a list of trimmed, non-empty strings.

    Lists are trimmed element-wise; strings are split on commas. Anything
    else yields an empty list.
    """
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    if isinstance(value, str):
        return split_list(value)
    return []


def align(aux: List[str], count: int, default: str) -> List[str]:
    """
    Stretch an auxiliary list to ``count`` entries.

    Equal lengths zip one-to-one. A non-empty list of any other length has
    its first element repeated. An empty list is filled with ``default``.
    """
    if aux and len(aux) == count:
        return list(aux)
    if aux:
        return [aux[0] or default] * count
    return [default] * count


def _first_attribute(feature: Feature, keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = feature.get(key)
        if value:
            return value
    return None


def get_subfeatures(feature: Any) -> List[Any]:
    """
    Child features reachable through any of the usual accessors.

    ``get('subfeatures')``, ``get('children')`` and ``children()`` are all
    tried; failures are ignored and each child object is returned once.
    """
    found: List[Any] = []
    seen = set()

    def add(children: Any) -> None:
        if not isinstance(children, (list, tuple)):
            return
        for child in children:
            if id(child) not in seen:
                seen.add(id(child))
                found.append(child)

    getter = getattr(feature, 'get', None)
    if callable(getter):
        for key in ('subfeatures', 'children'):
            try:
                add(getter(key))
            except Exception as e:
                logger.debug(f"Error reading {key} from feature: {e}")

    accessor = getattr(feature, 'children', None)
    if callable(accessor):
        try:
            add(accessor())
        except Exception as e:
            logger.debug(f"Error calling children() on feature: {e}")

    return found


class ContentAggregator:
    """Walks a feature tree and builds aligned content triples."""

    def __init__(self, mode: ContentMode = IMAGE_MODE,
                 error_handler: Optional[ErrorHandler] = None):
        self.mode = mode
        self.error_handler = error_handler or get_error_handler()

    def extract_own(self, feature: Any) -> Optional[Tuple[List[str], List[str], List[str]]]:
        """
        Parse one feature's own content, ignoring its children.

        Returns:
            ``(values, labels, types)`` of equal length, or None when the
            feature contributes nothing
        """
        if not callable(getattr(feature, 'get', None)):
            return None

        try:
            raw = _first_attribute(feature, self.mode.primary_keys)
            if not raw or raw == NONE_SENTINEL:
                return None

            values = parse_attribute_list(raw)
            if not values:
                return None

            labels = parse_attribute_list(_first_attribute(feature, self.mode.label_keys))
            types = parse_attribute_list(_first_attribute(feature, self.mode.type_keys))

            return (
                values,
                align(labels, len(values), self.mode.default_label),
                align(types, len(values), self.mode.default_type),
            )
        except Exception as e:
            self.error_handler.handle_error(
                e,
                operation=f"extract {self.mode.name} content",
                item_id=_safe_feature_id(feature),
                error_type=ErrorType.CONTENT_EXTRACTION
            )
            return None

    def collect(self, feature: Any) -> Tuple[List[str], List[str], List[str]]:
        """Concatenate content from the feature and every descendant, in pre-order."""
        values: List[str] = []
        labels: List[str] = []
        types: List[str] = []
        visited = set()

        stack = [feature]
        while stack:
            node = stack.pop()
            if node is None or id(node) in visited:
                continue
            visited.add(id(node))

            own = self.extract_own(node)
            if own:
                values.extend(own[0])
                labels.extend(own[1])
                types.extend(own[2])

            if callable(getattr(node, 'get', None)) or callable(getattr(node, 'children', None)):
                stack.extend(reversed(get_subfeatures(node)))

        return values, labels, types

    def aggregate(self, feature: Any) -> FeatureContent:
        """
        Build the display-ready content for a feature.

        Values are deduplicated by first occurrence and the label and type
        at that same position travel with each kept value.
        """
        values, labels, types = self.collect(feature)
        content = self.merge(values, labels, types)

        logger.debug(
            f"Aggregated {len(values)} raw {self.mode.name} value(s) "
            f"for {_safe_feature_id(feature)}"
        )
        return content

    def merge(self, values: List[str], labels: List[str], types: List[str]) -> FeatureContent:
        """Dedupe values by first occurrence, carrying the aligned label and type along."""
        unique_values: List[str] = []
        unique_labels: List[str] = []
        unique_types: List[str] = []
        seen = set()

        for i, value in enumerate(values):
            if value and value not in seen:
                seen.add(value)
                unique_values.append(value)
                unique_labels.append(labels[i] if i < len(labels) and labels[i] else self.mode.default_label)
                unique_types.append(types[i] if i < len(types) and types[i] else self.mode.default_type)

        return FeatureContent(
            primary=",".join(unique_values),
            labels=",".join(unique_labels),
            types=",".join(unique_types),
        )

    def aggregate_dict(self, feature: Any) -> Dict[str, str]:
        return self.mode.as_dict(self.aggregate(feature))


def collect_images(feature: Any) -> Dict[str, str]:
    """``{images, labels, types}`` for a feature tree."""
    return ContentAggregator(IMAGE_MODE).aggregate_dict(feature)


def collect_text_content(feature: Any) -> Dict[str, str]:
    """``{markdown_urls, descriptions, content_types}`` for a feature tree."""
    return ContentAggregator(TEXT_MODE).aggregate_dict(feature)


def make_content_extractor(mode: ContentMode,
                           error_handler: Optional[ErrorHandler] = None,
                           recursive: bool = False) -> Callable[[Any], Dict[str, str]]:
    """
    Build a per-result content hook for searches.

    By default only the feature's own attributes are read, leaving
    sub-features to the full aggregation that runs when a feature object is
    selected. With ``recursive`` the whole tree is aggregated up front.
    """

    def extractor(feature: Any) -> Dict[str, str]:
        aggregator = ContentAggregator(mode, error_handler)
        if recursive:
            content = aggregator.aggregate(feature)
            return {} if content.is_empty else mode.as_dict(content)

        own = aggregator.extract_own(feature)
        if not own:
            return {}
        return mode.as_dict(aggregator.merge(*own))

    return extractor


image_content_extractor = make_content_extractor(IMAGE_MODE)
text_content_extractor = make_content_extractor(TEXT_MODE)


def _safe_feature_id(feature: Any) -> str:
    try:
        for key in ('ID', 'id', 'Name', 'name'):
            value = feature.get(key)
            if value:
                return str(value)
    except Exception:
        pass
    return "unknown"
