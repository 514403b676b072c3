"""
Crawl engine components.
"""

from .url_normalizer import Scope, URLScope, normalize_url, classify_url, extract_directory
from .url_frontier import URLFrontier, URLTask
from .robots import RobotsPolicy, RobotsRuleSet, parse_robots
from .fetcher import WebFetcher, FetchResult
from .parser import ContentParser, ParsedContent
from .scheduler import CrawlerScheduler, CrawlStats

__all__ = [
    'Scope', 'URLScope', 'normalize_url', 'classify_url', 'extract_directory',
    'URLFrontier', 'URLTask',
    'RobotsPolicy', 'RobotsRuleSet', 'parse_robots',
    'WebFetcher', 'FetchResult',
    'ContentParser', 'ParsedContent',
    'CrawlerScheduler', 'CrawlStats',
]
