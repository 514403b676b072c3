"""
Test configuration and fixtures for crawler tests
"""

import pytest

from helpers import FakeFetcher, html_page, make_config


@pytest.fixture
def site_graph():
    """Seed page linking to an HTML page, an image, a subdomain and an external host."""
    return {
        'https://example.com/robots.txt': (404, 'text/plain', None),
        'https://example.com/': html_page('/about/', '/logo.png', 'https://sub1.example.com/',
                                          'http://other.com/'),
        'https://example.com/about/': html_page('/', '/about/team/'),
        'https://example.com/logo.png': (200, 'image/png', None),
        'https://sub1.example.com/robots.txt': (404, 'text/plain', None),
        'https://sub1.example.com/': html_page('/docs/'),
    }


@pytest.fixture
def fake_fetcher(site_graph):
    return FakeFetcher(site_graph)


@pytest.fixture
def crawler_config():
    return make_config(max_depth=1)
