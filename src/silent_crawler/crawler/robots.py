"""
robots.txt policy engine.

Directive syntax is read by ``urllib.robotparser``; evaluation of the
resulting rules (longest match, Allow wins ties) happens here.
"""

import asyncio
import logging
import time
import urllib.robotparser
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote, urlsplit


@dataclass(frozen=True)
class RobotsRule:
    """Single Allow/Disallow path-prefix rule."""
    path: str
    allowance: bool


@dataclass
class RobotsGroup:
    """Rules that apply to one set of user-agent tokens."""
    user_agents: List[str]
    rules: List[RobotsRule] = field(default_factory=list)


@dataclass
class RobotsRuleSet:
    """Parsed robots.txt for a single host."""
    groups: List[RobotsGroup] = field(default_factory=list)
    fetched_at: float = field(default_factory=time.time)

    @classmethod
    def allow_all(cls) -> 'RobotsRuleSet':
        return cls(groups=[])

    def _matching_groups(self, user_agent: str) -> List[RobotsGroup]:
        agent = user_agent.strip().lower()
        product = agent.split('/', 1)[0].strip()

        exact = [
            group for group in self.groups
            if any(token.lower() in (agent, product) for token in group.user_agents)
        ]
        if exact:
            return exact
        return [group for group in self.groups if '*' in group.user_agents]

    def is_allowed(self, path: str, user_agent: str) -> bool:
        """
        Evaluate rules for ``path``.

        The longest matching rule wins; on equal length Allow wins.
        Without a matching rule the path is allowed.
        """
        path = unquote(path or '/')
        best: Optional[Tuple[int, bool]] = None

        for group in self._matching_groups(user_agent):
            for rule in group.rules:
                if not rule.path or not path.startswith(rule.path):
                    continue
                candidate = (len(rule.path), rule.allowance)
                if best is None or candidate > best:
                    best = candidate

        return True if best is None else best[1]


def _convert_entry(entry) -> RobotsGroup:
    rules = [
        RobotsRule(path=unquote(line.path), allowance=line.allowance)
        for line in entry.rulelines
    ]
    return RobotsGroup(user_agents=list(entry.useragents), rules=rules)


class _GroupCollector(urllib.robotparser.RobotFileParser):
    """RobotFileParser that keeps every group, including repeated '*' groups."""

    def _add_entry(self, entry):
        self.entries.append(entry)


def parse_robots(text: str) -> RobotsRuleSet:
    """
    Parse robots.txt content into a rule set.

    Groups naming the same user-agent are all kept; their rules are merged
    at evaluation time.
    """
    parser = _GroupCollector()
    parser.parse(text.splitlines())

    return RobotsRuleSet(groups=[_convert_entry(entry) for entry in parser.entries])


class RobotsPolicy:
    """
    Holds one robots.txt rule set per host and answers allow/disallow
    queries. robots.txt is fetched lazily, once per host.
    """

    def __init__(self, fetcher, user_agent: str, respect_robots_txt: bool = True):
        self.fetcher = fetcher
        self.user_agent = user_agent
        self.respect_robots_txt = respect_robots_txt
        self.logger = logging.getLogger(__name__)

        self.robots_cache: Dict[str, RobotsRuleSet] = {}
        self._host_locks: Dict[str, asyncio.Lock] = {}

        self.stats = {
            'robots_fetched': 0,
            'robots_unavailable': 0,
            'blocked': 0,
        }

    async def is_allowed(self, url: str) -> bool:
        """Check whether ``url`` may be fetched under its host's robots.txt."""
        if not self.respect_robots_txt:
            return True

        parts = urlsplit(url)
        path = parts.path or '/'
        if parts.query:
            path = f'{path}?{parts.query}'

        rule_set = await self.get_rule_set(parts.scheme, parts.netloc)
        allowed = rule_set.is_allowed(path, self.user_agent)
        if not allowed:
            self.stats['blocked'] += 1
            age = time.time() - rule_set.fetched_at
            self.logger.debug(f"robots.txt (fetched {age:.0f}s ago) disallows: {url}")
        return allowed

    async def get_rule_set(self, scheme: str, host: str) -> RobotsRuleSet:
        """Return the cached rule set for ``host``, fetching it on first use."""
        host = host.lower()
        rule_set = self.robots_cache.get(host)
        if rule_set is not None:
            return rule_set

        lock = self._host_locks.setdefault(host, asyncio.Lock())
        async with lock:
            rule_set = self.robots_cache.get(host)
            if rule_set is None:
                rule_set = await self._fetch_rule_set(scheme, host)
                self.robots_cache[host] = rule_set
        return rule_set

    async def _fetch_rule_set(self, scheme: str, host: str) -> RobotsRuleSet:
        robots_url = f"{scheme}://{host}/robots.txt"
        self.stats['robots_fetched'] += 1

        result = await self.fetcher.fetch(robots_url, force_text=True)
        if result.error or result.content is None:
            # Unavailable robots.txt means no restrictions
            self.stats['robots_unavailable'] += 1
            self.logger.debug(f"No usable robots.txt at {robots_url}: {result.error}")
            return RobotsRuleSet.allow_all()

        rule_set = parse_robots(result.content)
        self.logger.debug(f"Loaded robots.txt for {host}: {len(rule_set.groups)} groups")
        return rule_set
