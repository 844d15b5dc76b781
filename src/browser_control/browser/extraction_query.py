"""Declarative inputs for in-page state queries.

Selector lists, caps and ranking weights live here as data. They are shipped
to the page as the single structured argument of ``_PAGE_QUERY_JS`` and
reused by the Python-side reduction in ``state_reduction``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

INTERACTIVE_SELECTORS = (
    "a[href]",
    "button",
    "input",
    "select",
    "textarea",
    '[role="button"]',
    '[role="link"]',
    '[role="checkbox"]',
    '[role="radio"]',
    '[role="tab"]',
    '[role="menuitem"]',
    '[role="textbox"]',
    '[role="combobox"]',
    "[onclick]",
    '[tabindex]:not([tabindex="-1"])',
    "[data-test-id]",
    "[data-selenium-test]",
    '[contenteditable="true"]',
)

CAPTURED_ATTRIBUTES = (
    "href",
    "type",
    "name",
    "role",
    "placeholder",
    "title",
    "aria-label",
    "contenteditable",
    "data-test-id",
    "data-selenium-test",
    "data-testid",
    "data-column-index",
    "data-table-external-id",
)

# Attributes surfaced on full-state elements.
FULL_ELEMENT_ATTRIBUTES = (
    "href",
    "type",
    "name",
    "role",
    "placeholder",
    "data-test-id",
    "data-selenium-test",
    "aria-label",
)

HTML_REMOVED_TAGS = (
    "script",
    "style",
    "noscript",
    "svg",
    "path",
    "meta",
    "link",
    "object",
    "embed",
    "template",
    "iframe",
)

HTML_KEPT_ATTRIBUTES = (
    "id",
    "name",
    "href",
    "src",
    "alt",
    "title",
    "placeholder",
    "type",
    "value",
    "role",
    "disabled",
    "readonly",
    "checked",
    "selected",
    "for",
    "action",
    "method",
    "target",
    "rel",
    "aria-label",
    "aria-labelledby",
    "aria-describedby",
    "data-test-id",
    "data-selenium-test",
    "data-testid",
    "data-cy",
)

HTML_VOID_TAGS = (
    "img",
    "br",
    "hr",
    "input",
    "meta",
    "link",
    "area",
    "base",
    "col",
    "embed",
    "param",
    "source",
    "track",
    "wbr",
)

ROW_ID_PREFIX = "row-"
ROW_CONTAINER_SELECTOR = 'tr[data-test-id^="row-"]'
FALLBACK_ROW_SELECTOR = 'tr[data-test-id^="row-"], [data-test-id^="row-"]'
CELL_EXTERNAL_ID_SELECTOR = "td[data-table-external-id], th[data-table-external-id]"
ROW_LINK_SELECTOR = "a[data-link]"

ROW_ACTION_PATTERNS = {
    "select": '[data-test-id="checkbox-select-row-{id}"]',
    "preview": '[data-test-id="preview-{id}"]',
    "click": 'a[href*="record/0-1/{id}"]',
}

# Test ids shared by every cell of an editable grid; useless as selectors.
GENERIC_TEST_IDS = frozenset({"framework-data-table-editable-cell"})

# Ordered selector sources, first match wins.
SELECTOR_CHAIN = (
    ("test_id", "data-test-id"),
    ("test_id", "data-selenium-test"),
    ("test_id", "data-testid"),
    ("row_cell", "data-table-external-id"),
    ("dom_id", "id"),
    ("tag_attr", "name"),
    ("tag_attr", "aria-label"),
    ("column_cell", "data-column-index"),
    ("short_href", "href"),
    ("stable_class", "class"),
    ("bare_tag", "tag"),
)

COMPACT_LABEL_SOURCES = (
    "aria-label",
    "title",
    "text",
    "placeholder",
    "value",
    "labelFor",
    "labelledBy",
    "data-test-id",
    "data-selenium-test",
)

FULL_LABEL_SOURCES = (
    "placeholder",
    "value",
    "text",
    "aria-label",
    "title",
    "labelledBy",
    "labelFor",
    "name",
    "data-test-id",
    "data-selenium-test",
)

PRIORITY_WEIGHTS = {
    "in_viewport": 100,
    "test_id": 50,
    "form_control": 30,
    "button": 20,
    "link": 10,
}

BUCKET_FOR_KIND = {
    "btn": "buttons",
    "link": "links",
    "input": "inputs",
    "select": "inputs",
    "checkbox": "inputs",
    "radio": "inputs",
    "tab": "other",
    "menu": "other",
    "other": "other",
}

COMPACT_BUCKETS = ("buttons", "links", "inputs", "other")


@dataclass(frozen=True)
class StateOptions:
    max_elements: int = 200
    max_html_length: int = 50_000
    max_text_length: int = 5_000
    include_iframes: bool = False
    max_per_bucket: int = 40
    label_length: int = 50
    full_label_length: int = 80
    max_table_rows: int = 10
    max_tables: int = 5
    header_length: int = 30
    cell_length: int = 40
    fallback_text_length: int = 60
    summary_length: int = 500
    scan_limit: int = 1_000

    def with_overrides(self, **changes: Any) -> "StateOptions":
        clean = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **clean)


DEFAULT_STATE_OPTIONS = StateOptions()


def build_page_query(mode: str, options: Optional[StateOptions] = None) -> Dict[str, Any]:
    """Build the structured argument passed to ``_PAGE_QUERY_JS``."""
    opts = options or DEFAULT_STATE_OPTIONS
    full = mode == "full"
    compact = mode == "compact"
    return {
        "mode": mode,
        "selectors": ", ".join(INTERACTIVE_SELECTORS),
        "attributes": list(CAPTURED_ATTRIBUTES),
        "attributeLength": 200,
        "minSize": 1 if full else 5,
        "rejectTransparent": full,
        "scanLimit": max(1, int(opts.scan_limit)),
        "textLength": max(opts.label_length, opts.full_label_length) * 2,
        "rowContainerSelector": ROW_CONTAINER_SELECTOR,
        "cellExternalIdSelector": CELL_EXTERNAL_ID_SELECTOR,
        "includeHtml": full,
        "maxHtmlLength": int(opts.max_html_length),
        "htmlRemovedTags": list(HTML_REMOVED_TAGS),
        "htmlKeptAttributes": list(HTML_KEPT_ATTRIBUTES),
        "htmlVoidTags": list(HTML_VOID_TAGS),
        "includeText": full,
        "maxTextLength": int(opts.max_text_length),
        "includeTables": compact,
        "maxTables": int(opts.max_tables),
        "maxTableRows": int(opts.max_table_rows),
        "headerLength": int(opts.header_length),
        "cellLength": int(opts.cell_length),
        "rowLinkSelector": ROW_LINK_SELECTOR,
        "fallbackRowSelector": FALLBACK_ROW_SELECTOR,
        "fallbackTextLength": int(opts.fallback_text_length),
        "summaryLength": int(opts.summary_length) if compact else 0,
    }
