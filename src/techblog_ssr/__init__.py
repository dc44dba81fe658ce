"""Crawler-aware server-side rendering for the TechBlog AI single-page app."""

__version__ = "0.1.0"
