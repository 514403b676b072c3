"""
Silent Crawler

Discovers URLs, directories and subdomains of a website by walking its
link graph to a bounded depth.
"""

__version__ = "1.0.0"
__description__ = "Discover URLs, directories and subdomains of a website"
