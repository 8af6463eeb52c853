"""Configuration models, paths and loading."""
