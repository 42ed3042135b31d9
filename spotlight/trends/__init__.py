"""Trend detection over ingested news and trend lifecycle management."""
