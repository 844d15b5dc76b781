"""Python-side reduction of raw in-page query results into page states."""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .extraction_query import (
    BUCKET_FOR_KIND,
    COMPACT_BUCKETS,
    COMPACT_LABEL_SOURCES,
    DEFAULT_STATE_OPTIONS,
    FULL_ELEMENT_ATTRIBUTES,
    FULL_LABEL_SOURCES,
    GENERIC_TEST_IDS,
    PRIORITY_WEIGHTS,
    ROW_ACTION_PATTERNS,
    ROW_ID_PREFIX,
    SELECTOR_CHAIN,
    StateOptions,
)

_SIMPLE_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
_STABLE_CLASS = re.compile(r"^[A-Za-z_-][A-Za-z0-9_-]*$")
_MAX_CLASS_LENGTH = 30
_MAX_HREF_LENGTH = 60
_FIELD_TAGS = frozenset({"input", "textarea", "select"})
_BUTTON_INPUT_TYPES = frozenset({"submit", "button", "reset", "image"})


def _squash(value: Any) -> str:
    return " ".join(str(value or "").split())


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _attrs(candidate: Mapping[str, Any]) -> Mapping[str, Any]:
    attrs = candidate.get("attrs")
    return attrs if isinstance(attrs, Mapping) else {}


def _tag(candidate: Mapping[str, Any]) -> str:
    return str(candidate.get("tag") or "").lower() or "div"


def _row_id(test_id: Optional[str]) -> Optional[str]:
    if not test_id or not str(test_id).startswith(ROW_ID_PREFIX):
        return None
    return str(test_id)[len(ROW_ID_PREFIX):] or None


# Selector chain steps. Each returns a selector or "" to defer to the next step.


def _select_test_id(candidate: Mapping[str, Any], attr: str) -> str:
    value = _attrs(candidate).get(attr)
    if not value or value in GENERIC_TEST_IDS:
        return ""
    return f'[{attr}="{_quote(value)}"]'


def _select_row_cell(candidate: Mapping[str, Any], attr: str) -> str:
    external_id = candidate.get("cellExternalId") or _attrs(candidate).get(attr)
    if not external_id:
        return ""
    cell = f'[{attr}="{_quote(external_id)}"]'
    suffix = " a[data-link]" if _tag(candidate) == "a" else ""
    row_test_id = candidate.get("rowTestId")
    if row_test_id:
        return f'[data-test-id="{_quote(row_test_id)}"] {cell}{suffix}'
    return f"{cell}{suffix}"


def _select_dom_id(candidate: Mapping[str, Any], attr: str) -> str:
    value = str(candidate.get("id") or "")
    if not value:
        return ""
    if _SIMPLE_IDENT.match(value):
        return f"#{value}"
    return f'[id="{_quote(value)}"]'


def _select_tag_attr(candidate: Mapping[str, Any], attr: str) -> str:
    value = _attrs(candidate).get(attr)
    if not value:
        return ""
    return f'{_tag(candidate)}[{attr}="{_quote(value)}"]'


def _select_column_cell(candidate: Mapping[str, Any], attr: str) -> str:
    value = _attrs(candidate).get(attr)
    if not value or _tag(candidate) != "td":
        return ""
    return f'td[{attr}="{_quote(value)}"]'


def _select_short_href(candidate: Mapping[str, Any], attr: str) -> str:
    href = _attrs(candidate).get(attr)
    if _tag(candidate) != "a" or not href or len(href) >= _MAX_HREF_LENGTH:
        return ""
    return f'a[href="{_quote(href)}"]'


def _select_stable_class(candidate: Mapping[str, Any], attr: str) -> str:
    for name in str(candidate.get("className") or "").split():
        if len(name) < _MAX_CLASS_LENGTH and _STABLE_CLASS.match(name):
            return f"{_tag(candidate)}.{name}"
    return ""


def _select_bare_tag(candidate: Mapping[str, Any], attr: str) -> str:
    return _tag(candidate)


_SELECTOR_STEPS: Dict[str, Callable[[Mapping[str, Any], str], str]] = {
    "test_id": _select_test_id,
    "row_cell": _select_row_cell,
    "dom_id": _select_dom_id,
    "tag_attr": _select_tag_attr,
    "column_cell": _select_column_cell,
    "short_href": _select_short_href,
    "stable_class": _select_stable_class,
    "bare_tag": _select_bare_tag,
}


def generate_selector(
    candidate: Mapping[str, Any],
    chain: Sequence[Tuple[str, str]] = SELECTOR_CHAIN,
) -> str:
    """Return the first selector the chain can derive for ``candidate``."""
    for step, attr in chain:
        selector = _SELECTOR_STEPS[step](candidate, attr)
        if selector:
            return selector
    return _tag(candidate)


def classify_element(candidate: Mapping[str, Any]) -> str:
    tag = _tag(candidate)
    attrs = _attrs(candidate)
    role = str(attrs.get("role") or "").lower()
    input_type = str(attrs.get("type") or "").lower()

    if tag == "button" or role == "button":
        return "btn"
    if tag == "a" or role == "link":
        return "link"
    if tag == "input":
        if input_type == "checkbox":
            return "checkbox"
        if input_type == "radio":
            return "radio"
        if input_type in _BUTTON_INPUT_TYPES:
            return "btn"
        return "input"
    if tag == "select" or role == "combobox":
        return "select"
    if role == "checkbox":
        return "checkbox"
    if role == "radio":
        return "radio"
    if tag == "textarea" or role == "textbox" or attrs.get("contenteditable") == "true":
        return "input"
    if role == "tab":
        return "tab"
    if role == "menuitem":
        return "menu"
    return "other"


def element_label(
    candidate: Mapping[str, Any],
    *,
    limit: int,
    sources: Iterable[str] = COMPACT_LABEL_SOURCES,
) -> str:
    attrs = _attrs(candidate)
    for source in sources:
        value = candidate.get(source) if source in candidate else attrs.get(source)
        text = _squash(value)
        if text:
            return text[:limit]
    return ""


def priority_score(candidate: Mapping[str, Any], weights: Mapping[str, int] = PRIORITY_WEIGHTS) -> int:
    tag = _tag(candidate)
    attrs = _attrs(candidate)
    score = 0
    if candidate.get("inViewport"):
        score += weights["in_viewport"]
    if attrs.get("data-test-id") or attrs.get("data-selenium-test"):
        score += weights["test_id"]
    if tag in _FIELD_TAGS:
        score += weights["form_control"]
    if tag == "button" or str(attrs.get("role") or "").lower() == "button":
        score += weights["button"]
    if tag == "a":
        score += weights["link"]
    return score


def _position_key(selector: str, candidate: Mapping[str, Any]) -> Tuple[str, int, int]:
    rect = candidate.get("rect") or {}
    return (selector, int(round(float(rect.get("x") or 0))), int(round(float(rect.get("y") or 0))))


def reduce_compact(raw: Mapping[str, Any], options: StateOptions = DEFAULT_STATE_OPTIONS) -> Dict[str, Any]:
    on_screen: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COMPACT_BUCKETS}
    off_screen: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COMPACT_BUCKETS}
    seen: set[Tuple[str, int, int]] = set()

    for candidate in raw.get("candidates") or []:
        if not isinstance(candidate, Mapping):
            continue
        selector = generate_selector(candidate)
        key = _position_key(selector, candidate)
        if key in seen:
            continue
        seen.add(key)

        kind = classify_element(candidate)
        item: Dict[str, Any] = {
            "selector": selector,
            "label": element_label(candidate, limit=options.label_length),
            "kind": kind,
        }
        if candidate.get("disabled"):
            item["disabled"] = True
        target = on_screen if candidate.get("inViewport") else off_screen
        target[BUCKET_FOR_KIND.get(kind, "other")].append(item)

    state: Dict[str, Any] = {
        "url": str(raw.get("url") or ""),
        "title": str(raw.get("title") or ""),
    }
    cap = max(0, int(options.max_per_bucket))
    for name in COMPACT_BUCKETS:
        state[name] = (on_screen[name] + off_screen[name])[:cap]
    state["tables"] = summarize_tables(raw.get("tables"), raw.get("rowContainers"), options)
    state["summary"] = _squash(raw.get("summary"))[: options.summary_length]
    return state


def summarize_tables(
    raw_tables: Optional[Iterable[Mapping[str, Any]]],
    row_containers: Optional[Mapping[str, Any]],
    options: StateOptions = DEFAULT_STATE_OPTIONS,
) -> List[Dict[str, Any]]:
    tables: List[Dict[str, Any]] = []
    for raw in raw_tables or []:
        headers = [_squash(h)[: options.header_length] for h in raw.get("headers") or []]
        headers = [h for h in headers if h]
        rows: List[Dict[str, Any]] = []
        has_row_ids = False
        for raw_row in (raw.get("rows") or [])[: options.max_table_rows]:
            row_id = _row_id(raw_row.get("testId"))
            has_row_ids = has_row_ids or row_id is not None
            cells = [(_squash(c)[: options.cell_length] or "--") for c in raw_row.get("cells") or []]
            if cells:
                rows.append({"id": row_id, "cells": cells})
        if not headers and not rows:
            continue
        table: Dict[str, Any] = {
            "headers": headers,
            "rowCount": int(raw.get("rowCount") or len(rows)),
            "rows": rows,
        }
        if has_row_ids:
            table["patterns"] = dict(ROW_ACTION_PATTERNS)
        tables.append(table)

    if tables or not row_containers:
        return tables

    # Virtualized lists render rows as styled containers instead of <table>.
    rows = []
    for raw_row in (row_containers.get("rows") or [])[: options.max_table_rows]:
        name = _squash(raw_row.get("link")) or _squash(raw_row.get("text"))
        if not name:
            continue
        rows.append({"id": _row_id(raw_row.get("testId")), "cells": [name[: options.fallback_text_length]]})
    if not rows:
        return tables
    table = {
        "headers": ["Name"],
        "rowCount": int(row_containers.get("count") or len(rows)),
        "rows": rows,
    }
    if any(row["id"] for row in rows):
        table["patterns"] = dict(ROW_ACTION_PATTERNS)
    return [table]


def reduce_full(raw: Mapping[str, Any], options: StateOptions = DEFAULT_STATE_OPTIONS) -> Dict[str, Any]:
    scored: List[Tuple[int, int, Dict[str, Any]]] = []
    seen: set[Tuple[str, int, int]] = set()
    for order, candidate in enumerate(raw.get("candidates") or []):
        if not isinstance(candidate, Mapping):
            continue
        selector = generate_selector(candidate)
        key = _position_key(selector, candidate)
        if key in seen:
            continue
        seen.add(key)

        text = element_label(candidate, limit=10_000, sources=FULL_LABEL_SOURCES)
        if len(text) > options.full_label_length:
            text = text[: options.full_label_length] + "..."
        attrs = _attrs(candidate)
        rect = candidate.get("rect") or {}
        element = {
            "tag": _tag(candidate),
            "type": attrs.get("type") or None,
            "text": text,
            "selector": selector,
            "boundingBox": {
                "x": int(rect.get("x") or 0),
                "y": int(rect.get("y") or 0),
                "width": int(rect.get("width") or 0),
                "height": int(rect.get("height") or 0),
            },
            "attributes": {
                name: attrs[name]
                for name in FULL_ELEMENT_ATTRIBUTES
                if attrs.get(name) and len(str(attrs[name])) < 100
            },
            "isVisible": True,
            "isEnabled": not bool(candidate.get("disabled")),
        }
        scored.append((priority_score(candidate), order, element))

    scored.sort(key=lambda item: (-item[0], item[1]))
    elements = []
    for index, (_, _, element) in enumerate(scored[: max(0, int(options.max_elements))]):
        element["index"] = index
        elements.append(element)

    return {
        "url": str(raw.get("url") or ""),
        "title": str(raw.get("title") or ""),
        "html": str(raw.get("html") or ""),
        "textContent": str(raw.get("textContent") or ""),
        "interactiveElements": elements,
        "viewport": _viewport(raw),
    }


def reduce_lite(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "url": str(raw.get("url") or ""),
        "title": str(raw.get("title") or ""),
        "elementCount": int(raw.get("elementCount") or 0),
        "viewport": _viewport(raw),
    }


def _viewport(raw: Mapping[str, Any]) -> Dict[str, int]:
    viewport = raw.get("viewport") or {}
    return {
        "width": int(viewport.get("width") or 1280),
        "height": int(viewport.get("height") or 720),
    }
