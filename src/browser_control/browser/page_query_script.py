"""In-page query script shared by every page-state fidelity."""

_PAGE_QUERY_JS = """
(q) => {
  const mode = q.mode || "compact";
  const viewport = { width: window.innerWidth, height: window.innerHeight };
  const result = { url: window.location.href, title: document.title || "", viewport };

  const norm = (value, max) =>
    String(value || "").replace(/\\s+/g, " ").trim().slice(0, max);

  let nodes = [];
  try {
    nodes = document.querySelectorAll(q.selectors);
  } catch (e) {
    nodes = [];
  }

  if (mode === "lite") {
    result.elementCount = nodes.length;
    return result;
  }

  const isHidden = (el) => {
    try {
      const style = window.getComputedStyle(el);
      if (style.display === "none" || style.visibility === "hidden") return true;
      if (q.rejectTransparent && style.opacity === "0") return true;
    } catch (e) {}
    return false;
  };

  const attrsOf = (el) => {
    const attrs = {};
    for (const name of q.attributes) {
      const value = el.getAttribute(name);
      if (value !== null && value.length <= q.attributeLength) attrs[name] = value;
    }
    return attrs;
  };

  const closestAttr = (el, selector, name) => {
    try {
      const hit = el.closest(selector);
      return hit ? hit.getAttribute(name) : null;
    } catch (e) {
      return null;
    }
  };

  const isField = (el) =>
    el instanceof HTMLInputElement ||
    el instanceof HTMLTextAreaElement ||
    el instanceof HTMLSelectElement;

  const valueOf = (el) => {
    if (el instanceof HTMLSelectElement) {
      const option = el.options[el.selectedIndex];
      return option ? option.text : "";
    }
    if (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement) {
      return el.value || "";
    }
    return "";
  };

  const textOf = (el) => {
    if (isField(el)) return "";
    const direct = Array.from(el.childNodes)
      .filter((n) => n.nodeType === Node.TEXT_NODE)
      .map((n) => n.textContent || "")
      .join(" ");
    return norm(direct, q.textLength) || norm(el.textContent, q.textLength);
  };

  const labelForText = (el) => {
    if (!el.id) return "";
    try {
      const label = document.querySelector('label[for="' + CSS.escape(el.id) + '"]');
      return label ? norm(label.textContent, q.textLength) : "";
    } catch (e) {
      return "";
    }
  };

  const labelledByText = (el) => {
    const ref = el.getAttribute("aria-labelledby");
    if (!ref) return "";
    const target = document.getElementById(ref);
    return target ? norm(target.textContent, q.textLength) : "";
  };

  const onScreen = [];
  const offScreen = [];
  for (const el of nodes) {
    if (onScreen.length >= q.scanLimit) break;
    const rect = el.getBoundingClientRect();
    if (rect.width < q.minSize || rect.height < q.minSize) continue;
    const inViewport =
      rect.y >= 0 && rect.y < viewport.height && rect.x >= 0 && rect.x < viewport.width;
    if (!inViewport && offScreen.length >= q.scanLimit) continue;
    if (isHidden(el)) continue;

    const tag = el.tagName.toLowerCase();
    let cellExternalId = el.getAttribute("data-table-external-id");
    if (!cellExternalId && tag === "a") {
      cellExternalId = closestAttr(el, q.cellExternalIdSelector, "data-table-external-id");
    }
    const candidate = {
      tag,
      id: el.id || "",
      className: typeof el.className === "string" ? el.className : "",
      attrs: attrsOf(el),
      text: textOf(el),
      value: norm(valueOf(el), q.textLength),
      labelFor: labelForText(el),
      labelledBy: labelledByText(el),
      rowTestId: closestAttr(el, q.rowContainerSelector, "data-test-id"),
      cellExternalId,
      disabled: el.disabled === true,
      inViewport,
      rect: {
        x: Math.round(rect.x),
        y: Math.round(rect.y),
        width: Math.round(rect.width),
        height: Math.round(rect.height),
      },
    };
    (inViewport ? onScreen : offScreen).push(candidate);
  }
  result.candidates = onScreen.concat(offScreen).slice(0, q.scanLimit);

  if (q.includeTables) {
    const tables = [];
    for (const table of document.querySelectorAll("table")) {
      if (tables.length >= q.maxTables) break;
      const headers = [];
      for (const th of table.querySelectorAll("thead th, thead td")) {
        if (th.getAttribute("data-selection-column")) continue;
        headers.push(norm(th.textContent, q.headerLength));
      }
      const bodyRows = table.querySelectorAll("tbody tr");
      const rows = [];
      for (let i = 0; i < Math.min(q.maxTableRows, bodyRows.length); i++) {
        const row = bodyRows[i];
        const cells = [];
        for (const cell of row.querySelectorAll("td")) {
          if (cell.getAttribute("data-selection-column")) continue;
          const link = cell.querySelector(q.rowLinkSelector);
          cells.push(norm(link ? link.textContent : cell.textContent, q.cellLength));
        }
        rows.push({ testId: row.getAttribute("data-test-id"), cells });
      }
      tables.push({ headers, rowCount: bodyRows.length, rows });
    }
    result.tables = tables;
    result.rowContainers = null;

    if (tables.length === 0) {
      let containers = [];
      try {
        containers = document.querySelectorAll(q.fallbackRowSelector);
      } catch (e) {
        containers = [];
      }
      const sample = [];
      for (let i = 0; i < Math.min(q.maxTableRows, containers.length); i++) {
        const row = containers[i];
        const link = row.querySelector(q.rowLinkSelector);
        sample.push({
          testId: row.getAttribute("data-test-id"),
          link: link ? norm(link.textContent, q.fallbackTextLength) : "",
          text: norm(row.textContent, q.fallbackTextLength),
        });
      }
      result.rowContainers = { count: containers.length, rows: sample };
    }
  }

  if (q.summaryLength > 0 && document.body) {
    let summary = "";
    const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT, {
      acceptNode(node) {
        const parent = node.parentElement;
        if (!parent) return NodeFilter.FILTER_REJECT;
        const tag = parent.tagName.toLowerCase();
        if (tag === "script" || tag === "style" || tag === "noscript") return NodeFilter.FILTER_REJECT;
        return NodeFilter.FILTER_ACCEPT;
      },
    });
    let node;
    while ((node = walker.nextNode()) && summary.length < q.summaryLength) {
      const text = (node.textContent || "").trim();
      if (text) summary += text + " ";
    }
    result.summary = norm(summary, q.summaryLength);
  }

  if (q.includeHtml && document.body) {
    const removed = new Set(q.htmlRemovedTags);
    const kept = new Set(q.htmlKeptAttributes);
    const voids = new Set(q.htmlVoidTags);
    let total = 0;
    let truncated = false;

    const render = (node) => {
      if (truncated) return "";
      if (node.nodeType === Node.TEXT_NODE) {
        const text = (node.textContent || "").trim();
        if (!text) return "";
        total += text.length + 1;
        if (total > q.maxHtmlLength) {
          truncated = true;
          return "";
        }
        return text + " ";
      }
      if (node.nodeType !== Node.ELEMENT_NODE) return "";
      const tag = node.tagName.toLowerCase();
      if (removed.has(tag)) return "";
      if (isHidden(node)) return "";

      let out = "<" + tag;
      for (const attr of node.attributes) {
        const keep =
          kept.has(attr.name) ||
          attr.name.startsWith("data-test") ||
          attr.name.startsWith("data-selenium");
        if (keep && attr.value) {
          out += " " + attr.name + '="' + attr.value.replace(/"/g, "&quot;") + '"';
        }
      }
      out += ">";
      total += out.length;
      if (total > q.maxHtmlLength) {
        truncated = true;
        return out;
      }
      for (const child of node.childNodes) {
        out += render(child);
        if (truncated) break;
      }
      if (!voids.has(tag)) out += "</" + tag + ">";
      return out;
    };

    const html = render(document.body);
    result.html = truncated ? html + "... (truncated)" : html;
  }

  if (q.includeText && document.body) {
    const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT, {
      acceptNode(node) {
        const parent = node.parentElement;
        if (!parent) return NodeFilter.FILTER_REJECT;
        const tag = parent.tagName.toLowerCase();
        if (tag === "script" || tag === "style" || tag === "noscript") return NodeFilter.FILTER_REJECT;
        return isHidden(parent) ? NodeFilter.FILTER_REJECT : NodeFilter.FILTER_ACCEPT;
      },
    });
    const texts = [];
    let length = 0;
    let node;
    while ((node = walker.nextNode())) {
      const text = (node.textContent || "").trim();
      if (!text) continue;
      length += text.length + 1;
      if (length > q.maxTextLength) break;
      texts.push(text);
    }
    const joined = texts.join(" ").replace(/\\s+/g, " ").trim();
    result.textContent =
      joined.length > q.maxTextLength ? joined.slice(0, q.maxTextLength) + "..." : joined;
  }

  return result;
}
"""

# Evaluated against an <iframe> element handle to derive a stable frame selector.
_FRAME_SELECTOR_JS = """
(el) => {
  if (el.id) return 'iframe[id="' + el.id + '"]';
  if (el.name) return 'iframe[name="' + el.name + '"]';
  const src = el.getAttribute("src");
  if (src) return 'iframe[src="' + src + '"]';
  return "";
}
"""
