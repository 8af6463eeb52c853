"""Marketplace fetchers, manifest cache and source parsing."""
