"""Crawl stage: fetching, rendering, gating and traversal."""
