"""Aggregation and reporting over work records."""
