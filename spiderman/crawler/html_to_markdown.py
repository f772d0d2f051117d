"""
HTML to Markdown conversion for exported documents.

Walks the parsed tree and renders block elements (headings, paragraphs,
lists, quotes, code blocks, tables) and inline emphasis, links and images.
Navigation, scripts and other page chrome are skipped.
"""

import re
from typing import Union

from bs4 import BeautifulSoup
from bs4.element import (
    CData,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)


SKIPPED_TAGS = frozenset([
    'script', 'style', 'noscript', 'template', 'head', 'title', 'meta', 'link',
    'nav', 'footer', 'aside', 'iframe', 'svg', 'form', 'button', 'select',
])
PARAGRAPH_TAGS = frozenset([
    'p', 'div', 'section', 'article', 'main', 'header', 'figure', 'figcaption',
    'address', 'details', 'summary', 'dl', 'dt', 'dd',
])
HEADING_TAGS = {f'h{level}': level for level in range(1, 7)}

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction, CData)
_WHITESPACE = re.compile(r'\s+')
_NESTED_ITEM = re.compile(r'^(?:  )+(?:- |\d+\. )')


def html_to_markdown(document: Union[str, bytes, Tag, None], features: str = 'lxml') -> str:
    """
    Convert an HTML document (or an already parsed tree) to Markdown.

    Returns an empty string for empty input.
    """
    if document is None:
        return ''
    if isinstance(document, Tag):
        soup = document
    else:
        if not document:
            return ''
        soup = BeautifulSoup(document, features)

    root = soup.find('body') or soup
    return clean_markdown(_render_children(root))


def clean_markdown(markdown: str) -> str:
    """Trim stray indentation and collapse runs of blank lines to one."""
    lines = []
    in_fence = False
    blank = False

    for line in markdown.splitlines():
        if line.strip().startswith('```'):
            in_fence = not in_fence
            lines.append(line.strip())
            blank = False
            continue

        if in_fence:
            lines.append(line.rstrip())
            continue

        line = line.rstrip() if _NESTED_ITEM.match(line) else line.strip()
        if not line:
            if not blank and lines:
                lines.append('')
            blank = True
            continue

        lines.append(line)
        blank = False

    return '\n'.join(lines).strip()


def _render_children(node: Tag) -> str:
    return ''.join(_render(child) for child in node.children)


def _inline(node: Tag) -> str:
    return _WHITESPACE.sub(' ', _render_children(node)).strip()


def _block(text: str) -> str:
    return f"\n\n{text}\n\n" if text else ''


def _render(node) -> str:
    if isinstance(node, _SKIPPED_STRINGS):
        return ''
    if isinstance(node, NavigableString):
        return _WHITESPACE.sub(' ', str(node))
    if not isinstance(node, Tag):
        return ''

    name = node.name
    if name in SKIPPED_TAGS:
        return ''

    if name in HEADING_TAGS:
        text = _inline(node)
        return _block(f"{'#' * HEADING_TAGS[name]} {text}") if text else ''

    if name in PARAGRAPH_TAGS:
        return _block(_render_children(node).strip())

    if name == 'br':
        return '\n'
    if name == 'hr':
        return _block('---')

    if name in ('ul', 'ol'):
        return _block(_render_list(node, ordered=name == 'ol'))
    if name == 'li':
        return _block(f"- {_inline(node)}")

    if name == 'blockquote':
        text = clean_markdown(_render_children(node))
        return _block('\n'.join(f"> {line}".rstrip() for line in text.splitlines()))

    if name == 'pre':
        code = node.get_text().strip('\n')
        return _block(f"```\n{code}\n```")

    if name == 'code':
        text = node.get_text()
        return f"`{text}`" if text else ''

    if name in ('strong', 'b'):
        return _wrap(node, '**')
    if name in ('em', 'i'):
        return _wrap(node, '*')

    if name == 'a':
        text = _inline(node)
        href = node.get('href')
        if text and isinstance(href, str) and href.strip() and not href.startswith('#'):
            return f"[{text}]({href.strip()})"
        return text

    if name == 'img':
        alt = (node.get('alt') or '').strip()
        src = node.get('src')
        if alt and isinstance(src, str) and src.strip():
            return f"![{alt}]({src.strip()})"
        return alt

    if name == 'table':
        return _block(_render_table(node))

    return _render_children(node)


def _wrap(node: Tag, marker: str) -> str:
    text = _inline(node)
    return f"{marker}{text}{marker}" if text else ''


def _render_list(node: Tag, ordered: bool) -> str:
    lines = []
    index = 0
    for item in node.find_all('li', recursive=False):
        index += 1
        marker = f"{index}. " if ordered else "- "
        text = clean_markdown(_render_children(item))
        if not text:
            continue
        first, *rest = text.splitlines()
        lines.append(f"{marker}{first}")
        lines.extend(f"  {line}" if line else '' for line in rest)
    return '\n'.join(lines)


def _render_table(node: Tag) -> str:
    rows = []
    for row in node.find_all('tr'):
        cells = [_inline(cell) for cell in row.find_all(['th', 'td'], recursive=False)]
        if any(cells):
            rows.append(' | '.join(cells))
    return '\n'.join(rows)
