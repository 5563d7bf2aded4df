"""
Prerender Service: renders pages in a headless browser for crawlers and
low-capability clients.
"""

__version__ = "0.1.0"
