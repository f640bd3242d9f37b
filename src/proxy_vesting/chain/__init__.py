"""Workflows that submit to, or read from, a live node."""
