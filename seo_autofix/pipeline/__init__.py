"""Orchestration of crawl, fix generation, change tracking and verification."""
