"""
URL normalization and scope classification.

Turns raw href values into canonical absolute URLs and decides how a
canonical URL relates to the crawl's root domain.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit


DEFAULT_PORTS = {'http': 80, 'https': 443}

REJECTED_PREFIXES = ('javascript:', 'mailto:', 'tel:', '#')

_DUPLICATE_SLASHES = re.compile(r'/{2,}')


class URLScope(Enum):
    """Relationship of a URL's host to the root domain."""
    IN_SCOPE = 'in_scope'
    SUBDOMAIN = 'subdomain'
    EXTERNAL = 'external'


@dataclass(frozen=True)
class Scope:
    """Crawl scope derived once from the seed URL's host."""
    root_domain: str

    @classmethod
    def from_url(cls, url: str) -> 'Scope':
        host = (urlsplit(url).hostname or '').lower()
        if not host:
            raise ValueError(f"URL has no host: {url}")
        return cls(root_domain=host)

    def contains(self, host: str) -> bool:
        host = host.lower()
        return host == self.root_domain or host.endswith('.' + self.root_domain)


def _remove_dot_segments(path: str) -> str:
    """Resolve '.' and '..' segments (RFC 3986, section 5.2.4)."""
    if '.' not in path:
        return path

    output = []
    segments = path.split('/')
    for segment in segments[1:-1]:
        if segment == '..':
            if output:
                output.pop()
        elif segment != '.':
            output.append(segment)

    last = segments[-1]
    if last in ('.', '..'):
        if last == '..' and output:
            output.pop()
        output.append('')
    else:
        output.append(last)

    return '/' + '/'.join(output)


def _canonical_path(path: str) -> str:
    path = _DUPLICATE_SLASHES.sub('/', path or '/')
    if not path.startswith('/'):
        path = '/' + path
    path = _remove_dot_segments(path)

    # Extension-less last segments are treated as directories
    last_segment = path.rsplit('/', 1)[-1]
    if last_segment and '.' not in last_segment:
        path += '/'
    return path


def normalize_url(href: Optional[str], base: str) -> Optional[str]:
    """
    Resolve ``href`` against ``base`` and return its canonical form.

    Args:
        href: Raw href value as found in a document
        base: Absolute URL the href is relative to

    Returns:
        Canonical absolute URL, or None if the href is rejected
    """
    if href is None:
        return None

    href = href.strip()
    if not href or href.lower().startswith(REJECTED_PREFIXES):
        return None

    try:
        parts = urlsplit(urljoin(base, href))
        scheme = parts.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            return None

        host = parts.hostname
        if not host:
            return None
        port = parts.port
    except ValueError:
        return None

    host = host.lower()
    if ':' in host:
        host = f'[{host}]'

    netloc = host
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f'{host}:{port}'

    return urlunsplit((scheme, netloc, _canonical_path(parts.path), parts.query, ''))


def classify_url(url: str, scope: Scope) -> URLScope:
    """Classify a canonical URL relative to the crawl scope."""
    host = (urlsplit(url).hostname or '').lower()
    if host == scope.root_domain:
        return URLScope.IN_SCOPE
    if host.endswith('.' + scope.root_domain):
        return URLScope.SUBDOMAIN
    return URLScope.EXTERNAL


def extract_directory(url: str) -> str:
    """Return the directory of a canonical URL, always ending in '/'."""
    path = urlsplit(url).path or '/'
    return path[:path.rfind('/') + 1]


def get_host(url: str) -> str:
    """Extract the lower-cased hostname from a URL."""
    return (urlsplit(url).hostname or '').lower()
