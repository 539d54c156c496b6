"""Sidecar that supervises a llama-server child and proxies its API."""

__version__ = "0.1.0"
