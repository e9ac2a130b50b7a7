"""Scrape engine: models, ports, parsers, catalog, metrics and scheduler."""
