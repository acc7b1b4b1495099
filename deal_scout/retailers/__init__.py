"""Retailer-specific scraping entry points."""
