"""deal-scout: paginated product-listing scraper for clearance deals."""

__version__ = "0.1.0"
