"""
Grouping of matched features for Map Inspector.

Turns hit-tested features into FeatureMatch objects with a resolved layer
identity and buckets them by layer type for the disambiguation popup.

A feature's layer-type key is resolved in priority order:
    1. The explicit tag stored on the feature when it was drawn
    2. Structural markers found in its popup markup
    3. Its popup title text
    4. A synthetic key unique to the feature

Steps 2 and 3 exist for features drawn without metadata. They are a
compatibility fallback and can be switched off with the 'content_sniffing'
setting.

Classes:
    LayerCatalog: Known layer keys, titles and markup markers from configuration

Functions:
    resolve_content: Pick popup content or its cached backup
    resolve_layer: Resolve a feature's (key, title)
    resolve_match: Build a FeatureMatch, or None when there is nothing to show
    group: Bucket matches by layer type, capping the number of groups
"""

import html
import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from core.features import FeatureMatch, GroupedResult, LayerGroup, RenderedFeature
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_GROUPS = 10
SYNTHETIC_KEY_PREFIX = 'feature:'
TITLE_KEY_PREFIX = 'title:'
DEFAULT_TITLE = 'Feature'

LAYER_TYPE_ATTR_RE = re.compile(r'data-layer-type\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE)
HEADING_RE = re.compile(r'<h[1-6][^>]*>(.*?)</h[1-6]>', re.IGNORECASE | re.DOTALL)
CAPTION_RE = re.compile(r'<i>(.*?)</i>', re.IGNORECASE | re.DOTALL)
TAG_RE = re.compile(r'<[^>]+>')
SLUG_RE = re.compile(r'[^a-z0-9]+')


def strip_tags(markup: str) -> str:
    text = html.unescape(TAG_RE.sub('', markup))
    return ' '.join(text.split())


def slugify(text: str) -> str:
    return SLUG_RE.sub('-', text.lower()).strip('-')


class LayerCatalog:
    """
    Known layers, indexed for the content-sniffing fallback.

    Built from the 'layers' section of the configuration; each entry supplies
    a key, a display name and optional marker strings.
    """

    def __init__(self, layers: Iterable[Dict] = (), content_sniffing: bool = True):
        self.content_sniffing = content_sniffing
        self._titles: Dict[str, str] = OrderedDict()
        self._markers: List[Tuple[str, str]] = []
        self._title_index: Dict[str, str] = {}

        for layer in layers:
            key = layer['key']
            self._titles[key] = layer['name']
            self._title_index[layer['name'].strip().lower()] = key
            for marker in layer.get('markers', []):
                self._markers.append((marker, key))

    @classmethod
    def from_config(cls, config: Dict, settings: Optional[Dict] = None) -> 'LayerCatalog':
        sniffing = True if settings is None else bool(settings.get('content_sniffing', True))
        return cls(config.get('layers', []), content_sniffing=sniffing)

    def title_for(self, key: str) -> Optional[str]:
        return self._titles.get(key)

    def sniff_markup(self, content: str) -> Optional[str]:
        """Return the layer key named by structural markers in ``content``."""
        attr = LAYER_TYPE_ATTR_RE.search(content)
        if attr:
            return html.unescape(attr.group(1)).strip()
        for marker, key in self._markers:
            if marker in content:
                return key
        return None

    def sniff_title(self, content: str) -> Optional[Tuple[str, str]]:
        """
        Return (key, title) inferred from the popup's heading or layer caption.

        A title that names a configured layer resolves to that layer's key;
        any other title gets a key derived from its text.
        """
        for pattern in (CAPTION_RE, HEADING_RE):
            found = pattern.search(content)
            if not found:
                continue
            title = strip_tags(found.group(1))
            if not title:
                continue
            known = self._title_index.get(title.lower())
            if known:
                return known, self._titles[known]
            slug = slugify(title)
            if slug:
                return f'{TITLE_KEY_PREFIX}{slug}', title
        return None


def resolve_content(feature: RenderedFeature) -> Optional[str]:
    """Return the feature's popup content, its backup, or None when both are blank."""
    for candidate in (feature.popup_content, feature.backup_content):
        if candidate is not None and candidate.strip():
            return candidate
    return None


def resolve_layer(feature: RenderedFeature, content: str, catalog: LayerCatalog) -> Tuple[str, str]:
    """Resolve the grouping key and display title for one feature."""
    if feature.layer_type:
        title = feature.layer_title or catalog.title_for(feature.layer_type) or feature.layer_type
        return feature.layer_type, title

    if catalog.content_sniffing:
        key = catalog.sniff_markup(content)
        if key:
            logger.debug(f"Layer type '{key}' for {feature.feature_id} inferred from popup markup")
            return key, feature.layer_title or catalog.title_for(key) or key

        titled = catalog.sniff_title(content)
        if titled:
            key, title = titled
            logger.debug(f"Layer type '{key}' for {feature.feature_id} inferred from popup title")
            return key, feature.layer_title or title

    # Own group so it is never merged into an unrelated layer's tab
    return f'{SYNTHETIC_KEY_PREFIX}{feature.feature_id}', feature.layer_title or DEFAULT_TITLE


def resolve_match(feature: RenderedFeature, catalog: LayerCatalog) -> Optional[FeatureMatch]:
    """
    Build the FeatureMatch for a feature that passed the hit test.

    Returns None when neither popup content nor backup content is available,
    so the feature is left out instead of producing an empty tab.
    """
    content = resolve_content(feature)
    if content is None:
        logger.debug(f"Dropping {feature.feature_id}: no popup or backup content")
        return None
    if content is not feature.popup_content:
        logger.debug(f"Using backup content for {feature.feature_id}")

    key, title = resolve_layer(feature, content, catalog)
    return FeatureMatch(feature=feature, layer_type=key, title=title, content=content)


def group(matches: Iterable[FeatureMatch], max_groups: int = MAX_GROUPS) -> GroupedResult:
    """
    Bucket matches by layer-type key.

    Groups appear in the order their key was first seen and members keep
    discovery order. Once ``max_groups`` keys exist, matches with new keys are
    kept in ``result.matches`` but get no group.
    """
    result = GroupedResult()
    for match in matches:
        result.matches.append(match)
        existing = result.groups.get(match.layer_type)
        if existing is not None:
            existing.matches.append(match)
            continue
        if len(result.groups) >= max_groups:
            if match.layer_type not in result.dropped_keys:
                result.dropped_keys.append(match.layer_type)
            continue
        result.groups[match.layer_type] = LayerGroup(
            key=match.layer_type, title=match.title, matches=[match]
        )

    if result.dropped_keys:
        logger.warning(
            f"Click matched {len(result.groups) + len(result.dropped_keys)} layers; "
            f"only the first {max_groups} get tabs (dropped: {', '.join(result.dropped_keys)})"
        )
    return result
