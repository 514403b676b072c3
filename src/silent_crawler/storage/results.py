"""
Result aggregation for discovered URLs, directories and subdomains.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class ResultSets:
    """Immutable snapshot of crawl results, in discovery order."""
    urls: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    subdomains: List[str] = field(default_factory=list)
    external: List[str] = field(default_factory=list)

    def to_dict(self, include_external: bool = False) -> Dict[str, Any]:
        data = {
            'urls': list(self.urls),
            'directories': list(self.directories),
            'subdomains': list(self.subdomains),
        }
        if include_external:
            data['external'] = list(self.external)
        return data


class ResultAggregator:
    """
    Collects deduplicated results from concurrent workers.
    Each set keeps first-insertion order.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._urls: Dict[str, None] = {}
        self._directories: Dict[str, None] = {}
        self._subdomains: Dict[str, None] = {}
        self._external: Dict[str, None] = {}

    def _insert(self, target: Dict[str, None], value: str) -> bool:
        with self._lock:
            if value in target:
                return False
            target[value] = None
            return True

    def record_url(self, url: str) -> bool:
        return self._insert(self._urls, url)

    def record_directory(self, directory: str) -> bool:
        return self._insert(self._directories, directory)

    def record_subdomain(self, hostname: str) -> bool:
        return self._insert(self._subdomains, hostname.lower())

    def record_external(self, url: str) -> bool:
        return self._insert(self._external, url)

    def snapshot(self) -> ResultSets:
        """Return a stable copy of everything recorded so far."""
        with self._lock:
            return ResultSets(
                urls=list(self._urls),
                directories=list(self._directories),
                subdomains=list(self._subdomains),
                external=list(self._external),
            )

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                'urls': len(self._urls),
                'directories': len(self._directories),
                'subdomains': len(self._subdomains),
                'external': len(self._external),
            }
