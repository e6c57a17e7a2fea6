"""
Heuristic extraction of a preview image and a short description from README markdown.

Not a markdown parser. Each rule is a single regular expression and the rules run in
this fixed order:

Image:
    1. first markdown image ``![alt](src)``
    2. otherwise first HTML ``<img src="...">``
    A markdown image whose source is blank, e.g. ``![](   )``, yields no URL and the
    HTML rule is tried instead. Sources starting with ``http`` are kept verbatim, anything else is resolved against
    the raw content of the ``main`` branch. Repositories with another default branch
    get a broken link and the page falls back to its placeholder image.

Description:
    1. drop the first top-level heading
    2. drop linked badges ``[![..](..)](..)``, then shields.io images
    3. drop every remaining image
    4. collapse ``[text](url)`` to ``text``
    5. keep lines longer than 20 characters that are neither headings nor code fences,
       join them with spaces and cut at 200 characters plus an ellipsis
"""

import re
from typing import Optional

DEFAULT_BRANCH = 'main'
MIN_LINE_LENGTH = 20
MAX_DESCRIPTION_LENGTH = 200

_MD_IMAGE = re.compile(r'!\[.*?\]\((.*?)\)')
_HTML_IMAGE = re.compile(r'<img[^>]+src=["\']([^"\']+)["\']', re.IGNORECASE)

_TITLE = re.compile(r'^#\s+.*$', re.MULTILINE)
_LINKED_BADGE = re.compile(r'\[!\[.*?\]\(.*?\)\]\(.*?\)')
_SHIELD = re.compile(r'!\[.*?\]\(https://img\.shields\.io.*?\)')
_LINK = re.compile(r'\[([^\]]+)\]\([^)]+\)')


def raw_content_url(repo_url: str, path: str) -> str:
    """Resolves a README-relative path to the raw file on the default branch."""
    path = path.strip()
    while path.startswith('./'):
        path = path[2:]
    return f"{repo_url.rstrip('/')}/raw/{DEFAULT_BRANCH}/{path.lstrip('/')}"


def _resolve(src: str, repo_url: str) -> Optional[str]:
    # ![alt](src "title") carries the title inside the parentheses
    parts = src.split()
    if not parts:
        return None
    src = parts[0]
    if src.startswith('http'):
        return src
    return raw_content_url(repo_url, src)


def extract_image(markdown: Optional[str], repo_url: str) -> Optional[str]:
    if not markdown:
        return None

    for pattern in (_MD_IMAGE, _HTML_IMAGE):
        match = pattern.search(markdown)
        if match and match.group(1):
            image = _resolve(match.group(1), repo_url)
            if image:
                return image

    return None


def extract_description(markdown: Optional[str]) -> Optional[str]:
    if not markdown:
        return None

    content = _TITLE.sub('', markdown, count=1)
    content = _LINKED_BADGE.sub('', content)
    content = _SHIELD.sub('', content)
    content = _MD_IMAGE.sub('', content)
    content = _LINK.sub(r'\1', content)

    lines = (line.strip() for line in content.split('\n'))
    text = ' '.join(
        line for line in lines
        if len(line) > MIN_LINE_LENGTH and not line.startswith('#') and not line.startswith('```')
    ).strip()

    if len(text) > MAX_DESCRIPTION_LENGTH:
        return text[:MAX_DESCRIPTION_LENGTH] + '...'

    return text or None
