"""Job search feeds kept fresh by a per-query scraping schedule."""
