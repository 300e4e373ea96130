"""
HTML Sanitization Utilities
File: app/utils/sanitize.py

Server-side cleaning of user supplied HTML (contract annexures, comments,
descriptions) before it is stored or rendered. Cleaning is delegated to nh3;
plain-text extraction uses BeautifulSoup.
"""

import re
from typing import Dict, Optional, Set

import nh3
from bs4 import BeautifulSoup

CONTRACT_ALLOWED_TAGS: Set[str] = {
    # Structure
    "div", "span", "p", "br", "hr",
    # Headings
    "h1", "h2", "h3", "h4", "h5", "h6",
    # Text formatting
    "strong", "b", "em", "i", "u", "s", "strike", "sub", "sup",
    # Lists
    "ul", "ol", "li",
    # Tables
    "table", "thead", "tbody", "tfoot", "tr", "th", "td", "caption", "colgroup", "col",
    # Other
    "blockquote", "pre", "code", "a", "img",
}

_GENERAL_ATTRS = {"class", "id", "style"}

CONTRACT_ALLOWED_ATTRIBUTES: Dict[str, Set[str]] = {
    "*": _GENERAL_ATTRS,
    # "rel" is managed by nh3 through link_rel
    "a": {"href", "target"},
    "img": {"src", "alt", "width", "height"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan", "scope"},
}

SAFE_URL_SCHEMES: Set[str] = {"http", "https", "mailto", "tel"}

# Removed together with everything inside them
FORBIDDEN_CONTENT_TAGS: Set[str] = {"script", "style", "iframe", "object", "embed", "form"}


class SanitizeConfig:
    """Named cleaning profiles"""

    CONTRACT_CONTENT = {
        "tags": CONTRACT_ALLOWED_TAGS,
        "attributes": CONTRACT_ALLOWED_ATTRIBUTES,
        "url_schemes": SAFE_URL_SCHEMES,
        "clean_content_tags": FORBIDDEN_CONTENT_TAGS,
        "generic_attribute_prefixes": {"data-"},
        "link_rel": "noopener noreferrer",
    }

    RICH_TEXT = {
        "tags": {"p", "br", "strong", "em", "u", "a", "ul", "ol", "li"},
        "attributes": {"a": {"href", "target"}},
        "url_schemes": SAFE_URL_SCHEMES,
        "clean_content_tags": FORBIDDEN_CONTENT_TAGS,
        "link_rel": "noopener noreferrer",
    }

    PLAIN_TEXT = {
        "tags": set(),
        "attributes": {},
        "clean_content_tags": FORBIDDEN_CONTENT_TAGS,
    }


DANGEROUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
]


def sanitize_html(dirty, config: Optional[dict] = None) -> str:
    """
    Clean untrusted HTML for safe storage and rendering.

    Args:
        dirty: untrusted HTML; anything that is not a non-empty string yields ""
        config: one of the SanitizeConfig profiles (CONTRACT_CONTENT by default)
    """
    if not dirty or not isinstance(dirty, str):
        return ""

    options = config if config is not None else SanitizeConfig.CONTRACT_CONTENT
    return nh3.clean(dirty, **options)


def sanitize_contract_content(content) -> str:
    return sanitize_html(content, SanitizeConfig.CONTRACT_CONTENT)


def sanitize_rich_text(content) -> str:
    return sanitize_html(content, SanitizeConfig.RICH_TEXT)


def strip_html(html) -> str:
    """Drop every tag (and script/style bodies) and return the plain text"""
    if not html or not isinstance(html, str):
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(list(FORBIDDEN_CONTENT_TAGS)):
        tag.decompose()
    return soup.get_text().strip()


def contains_dangerous_content(html) -> bool:
    if not html or not isinstance(html, str):
        return False
    return any(pattern.search(html) for pattern in DANGEROUS_PATTERNS)
