"""Site Reader: crawl a site, scrape its pages and cache the text."""

__version__ = "1.0.0"
