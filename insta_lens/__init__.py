"""insta-lens: Instagram profile scraping, LLM analysis and caching."""

__version__ = "0.1.0"
