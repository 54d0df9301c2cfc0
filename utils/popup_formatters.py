"""
Popup formatting utilities for Map Inspector.

This module builds the per-feature popup content captured when a feature is
drawn, plus the plain-text backup used when that content is unavailable.

Functions:
    format_popup_value: Format a single value for display in popup HTML
    find_name_value: Pick the feature's display name from its attributes
    build_popup_html: Full popup markup for one feature
    build_backup_content: Plain-text fallback content for one feature
"""

import html
from typing import Any, Dict, Optional


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and value != value)  # NaN check


def format_popup_value(col: str, value: Any) -> str:
    """
    Format popup values, converting URLs to clickable hyperlinks.

    Detects URLs in column names or values and converts them to HTML links.
    Long URLs are truncated for display. Other values are HTML-escaped.

    Parameters:
    -----------
    col : str
        Column name (used to detect URL fields)
    value : Any
        Value to format

    Returns:
    --------
    str
        Formatted HTML string safe for popup display

    Examples:
        >>> format_popup_value('name', 'Fire & Rescue')
        'Fire &amp; Rescue'

        >>> format_popup_value('count', None)
        'None'

        >>> format_popup_value('url', 'https://example.com')
        '<a href="https://example.com" target="_blank" ...>https://example.com</a>'
    """
    if is_missing(value):
        return 'None'

    value_str = str(value)

    is_url = 'url' in col.lower() or value_str.startswith(('http://', 'https://'))

    if is_url:
        display_text = value_str if len(value_str) <= 60 else f"{value_str[:57]}..."
        return (
            f'<a href="{html.escape(value_str, quote=True)}" target="_blank" '
            f'style="word-break: break-all; color: #0066cc;">{html.escape(display_text)}</a>'
        )

    return html.escape(value_str)


def find_name_value(props: Dict[str, Any], area_name_field: Optional[str] = None) -> Optional[str]:
    """
    Return the display name from the configured field, else the first '*name*' attribute.
    """
    if area_name_field and area_name_field in props:
        value = props[area_name_field]
        return None if is_missing(value) or value == '' else str(value)

    for key, value in props.items():
        if 'name' in key.lower() and not is_missing(value) and value != '':
            return str(value)
    return None


def build_popup_html(
    layer_name: str,
    props: Dict[str, Any],
    area_name_field: Optional[str] = None,
    layer_type: Optional[str] = None
) -> str:
    """
    Build popup markup: layer caption, bold name line, then one row per attribute.

    When ``layer_type`` is known it is written as a ``data-layer-type``
    attribute on the wrapper element.

    Example Output:
        <div class='mi-feature' data-layer-type='nh_parcels_all'>
            <div style='font-size: 10px;'><i>Parcels</i></div>
            <div style='font-size: 14px; font-weight: bold; margin: 5px 0;'>Lot 12</div>
            <hr style='margin: 5px 0;'>
            <b>OWNER:</b> Town of Concord<br>
        </div>
    """
    type_attr = f" data-layer-type='{html.escape(layer_type, quote=True)}'" if layer_type else ''
    popup_html = f"<div class='mi-feature'{type_attr}>"
    popup_html += f"<div style='font-size: 10px;'><i>{html.escape(layer_name)}</i></div>"

    name_value = find_name_value(props, area_name_field)
    if name_value:
        popup_html += (
            f"<div style='font-size: 14px; font-weight: bold; margin: 5px 0;'>"
            f"{html.escape(name_value)}</div>"
        )
    popup_html += "<hr style='margin: 5px 0;'>"

    for key, value in props.items():
        popup_html += f"<b>{html.escape(str(key))}:</b> {format_popup_value(str(key), value)}<br>"

    popup_html += "</div>"
    return popup_html


def build_backup_content(
    layer_name: str,
    props: Dict[str, Any],
    area_name_field: Optional[str] = None
) -> str:
    """Plain-text content naming the layer and, when known, the feature."""
    name_value = find_name_value(props, area_name_field)
    if name_value:
        return f"{html.escape(layer_name)}: {html.escape(name_value)}"
    return html.escape(layer_name)
