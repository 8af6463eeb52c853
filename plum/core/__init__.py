"""Plugin registry and install/remove/update pipelines."""
