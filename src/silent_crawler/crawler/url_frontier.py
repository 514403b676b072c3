"""
URL Frontier implementation for managing URLs to crawl.
Owns the traversal queue, the visited set and drain detection.
"""

import asyncio
import logging
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Set


@dataclass
class URLTask:
    """Represents a frontier entry: a canonical URL and its crawl depth."""
    url: str
    depth: int
    parent_url: Optional[str] = None


class URLFrontier:
    """
    Breadth-first work queue with a visited set.

    URLs are marked visited when admitted, so a URL is handed to at most
    one worker per run. Entries of depth d+1 are not handed out while an
    entry of depth d is still being processed.
    """

    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        self.logger = logging.getLogger(__name__)

        self._queue: Deque[URLTask] = deque()
        self._visited: Set[str] = set()
        self._in_flight: Counter = Counter()
        self._outstanding = 0
        self._closed = False
        self._condition = asyncio.Condition()

    async def offer(self, url: str, depth: int, parent_url: Optional[str] = None) -> bool:
        """
        Admit a URL to the frontier.
        Returns True if it was queued, False if already visited or too deep.
        """
        if depth < 0 or depth > self.max_depth:
            return False

        async with self._condition:
            if self._closed or url in self._visited:
                return False

            self._visited.add(url)
            self._queue.append(URLTask(url=url, depth=depth, parent_url=parent_url))
            self._condition.notify_all()

        self.logger.debug(f"Added URL to frontier (depth {depth}): {url}")
        return True

    def _can_serve(self) -> bool:
        if not self._queue:
            return False
        if not self._in_flight:
            return True
        return min(self._in_flight) >= self._queue[0].depth

    @property
    def is_drained(self) -> bool:
        return not self._queue and self._outstanding == 0

    async def take(self) -> Optional[URLTask]:
        """
        Wait for the next task.
        Returns None once the frontier is drained or closed.
        """
        async with self._condition:
            while True:
                if self._closed:
                    return None

                if self._can_serve():
                    task = self._queue.popleft()
                    self._in_flight[task.depth] += 1
                    self._outstanding += 1
                    return task

                if self.is_drained:
                    self._condition.notify_all()
                    return None

                await self._condition.wait()

    async def task_done(self, task: URLTask):
        """Mark a taken task as fully processed, including its offers."""
        async with self._condition:
            self._outstanding -= 1
            self._in_flight[task.depth] -= 1
            if self._in_flight[task.depth] <= 0:
                del self._in_flight[task.depth]
            self._condition.notify_all()

    async def close(self):
        """Stop handing out work and wake every waiting worker."""
        async with self._condition:
            self._closed = True
            self._condition.notify_all()

    def is_visited(self, url: str) -> bool:
        return url in self._visited

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': len(self._queue),
            'in_flight': self._outstanding,
            'total_visited': len(self._visited),
        }
