"""In-page JavaScript primitives.

The scripts only read or mutate the page; every decision about what to read
or mutate is made in Python.  Nodes are identified across calls through
``window.__perceptionRegistry``: a WeakMap gives each node a numeric id for
the lifetime of the document and ``documentId`` changes whenever the page
loads a new document.
"""

SNAPSHOT_SCRIPT = """
() => {
  if (!document.body) return null;
  const registry = window.__perceptionRegistry || (window.__perceptionRegistry = {
    documentId: Math.random().toString(36).slice(2) + Date.now().toString(36),
    nextId: 1,
    ids: new WeakMap(),
    nodes: new Map(),
  });
  registry.nodes = new Map();

  const HTML_NS = 'http://www.w3.org/1999/xhtml';
  const identify = (node) => {
    let id = registry.ids.get(node);
    if (id === undefined) {
      id = registry.nextId++;
      registry.ids.set(node, id);
    }
    registry.nodes.set(id, node);
    return id;
  };

  const serialize = (node) => {
    const id = identify(node);
    if (node.nodeType === Node.TEXT_NODE) {
      return { id, type: 'text', text: node.textContent || '' };
    }
    const style = window.getComputedStyle(node);
    const rect = node.getBoundingClientRect();
    const foreign = node.namespaceURI !== HTML_NS;
    return {
      id,
      type: 'element',
      tag: foreign ? node.localName : node.tagName.toLowerCase(),
      foreign,
      attrs: Array.from(node.attributes, (attr) => [attr.name, attr.value]),
      style: { display: style.display, visibility: style.visibility, opacity: style.opacity },
      rect: { top: rect.top, left: rect.left, width: rect.width, height: rect.height },
      children: [],
    };
  };

  const idCounts = {};
  document.querySelectorAll('[id]').forEach((el) => {
    const value = el.getAttribute('id');
    if (value) idCounts[value] = (idCounts[value] || 0) + 1;
  });

  const root = serialize(document.body);
  const stack = [[document.body, root]];
  while (stack.length) {
    const [node, record] = stack.pop();
    for (const child of node.childNodes) {
      if (child.nodeType !== Node.ELEMENT_NODE && child.nodeType !== Node.TEXT_NODE) continue;
      const childRecord = serialize(child);
      record.children.push(childRecord);
      if (child.nodeType === Node.ELEMENT_NODE) stack.push([child, childRecord]);
    }
  }

  return {
    documentId: registry.documentId,
    idCounts,
    rootPath: '/html/body',
    viewportHeight: window.innerHeight,
    documentHeight: document.documentElement.scrollHeight,
    scrollY: window.scrollY,
    body: root,
  };
}
"""

METRICS_SCRIPT = """
() => ({
  viewportHeight: window.innerHeight,
  documentHeight: document.documentElement.scrollHeight,
  scrollY: window.scrollY,
})
"""

# Resolves once no scroll event arrived for ``quietMs``.  The settle check is
# armed right after scrolling so a viewport already at rest resolves too.
SCROLL_TO_HEIGHT_SCRIPT = """
({ top, quietMs }) => new Promise((resolve) => {
  window.scrollTo({ top, left: 0, behavior: 'instant' });
  let timer;
  const onScroll = () => {
    clearTimeout(timer);
    timer = setTimeout(() => {
      window.removeEventListener('scroll', onScroll);
      resolve(window.scrollY);
    }, quietMs);
  };
  window.addEventListener('scroll', onScroll, { passive: true });
  onScroll();
})
"""

STORE_DOM_SCRIPT = """
() => document.body.cloneNode(true).outerHTML
"""

RESTORE_DOM_SCRIPT = """
(html) => { document.body.innerHTML = html; }
"""

APPLY_ANNOTATION_SCRIPT = """
({ entries, wordClass, spaceClass }) => {
  const styleId = 'perception-annotation-style';
  if (!document.getElementById(styleId)) {
    const style = document.createElement('style');
    style.id = styleId;
    style.textContent = `
      .${wordClass}, .${spaceClass} {
        border: 0px solid orange;
        display: inline-block !important;
        visibility: visible;
      }
      code .${wordClass}, code .${spaceClass},
      pre .${wordClass}, pre .${spaceClass} {
        white-space: pre-wrap;
        display: inline !important;
      }
    `;
    (document.head || document.documentElement).appendChild(style);
  }

  const registry = window.__perceptionRegistry;
  if (!registry) return 0;
  let applied = 0;
  for (const entry of entries) {
    const node = registry.nodes.get(entry.nodeId);
    if (!node || !node.parentNode) continue;
    const fragment = document.createDocumentFragment();
    for (const [token, kind] of entry.tokens) {
      const span = document.createElement('span');
      span.textContent = token;
      if (entry.code) {
        span.style.whiteSpace = 'pre-wrap';
        span.style.display = 'inline';
      }
      span.className = kind === 'space' ? spaceClass : wordClass;
      fragment.appendChild(span);
    }
    if (fragment.childNodes.length > 0) {
      node.parentNode.insertBefore(fragment, node);
      node.remove();
      applied += 1;
    }
  }
  return applied;
}
"""

MEASURE_SCRIPT = """
({ locator, wordClass }) => {
  let node = null;
  try {
    node = document.evaluate(
      locator, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null,
    ).singleNodeValue;
  } catch (error) {
    return null;
  }
  if (node && node.nodeType === Node.TEXT_NODE) node = node.parentElement;
  if (!node || node.nodeType !== Node.ELEMENT_NODE) return null;

  const toRect = (rect) => ({ top: rect.top, left: rect.left, width: rect.width, height: rect.height });
  const option = node.querySelector('option[selected]') || node.querySelector('option');
  return {
    tag: node.tagName.toLowerCase(),
    rect: toRect(node.getBoundingClientRect()),
    scrollX: window.scrollX,
    scrollY: window.scrollY,
    optionText: option ? (option.textContent || '') : null,
    placeholder: node.getAttribute('placeholder') || '',
    alt: node.getAttribute('alt') || '',
    tokens: Array.from(node.querySelectorAll('.' + wordClass), (word) => ({
      text: word.innerText || '',
      rect: toRect(word.getBoundingClientRect()),
    })),
  };
}
"""

__all__ = [
    "APPLY_ANNOTATION_SCRIPT",
    "MEASURE_SCRIPT",
    "METRICS_SCRIPT",
    "RESTORE_DOM_SCRIPT",
    "SCROLL_TO_HEIGHT_SCRIPT",
    "SNAPSHOT_SCRIPT",
    "STORE_DOM_SCRIPT",
]
