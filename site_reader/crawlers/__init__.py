"""Crawl and scrape capabilities."""

from .base import BaseCrawler
from .site_crawler import SiteCrawler
from .page_scraper import PageScraper

__all__ = ["BaseCrawler", "SiteCrawler", "PageScraper"]
