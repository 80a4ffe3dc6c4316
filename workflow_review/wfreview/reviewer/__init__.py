"""Deterministic workflow review: rules, aggregation and the review engine."""
