"""
Top-level package initializer for promptopt_Server_API.

The service exposes background prompt-optimization jobs over HTTP and keeps
their status and results as flat files under the configured data directory.
"""

from __future__ import annotations
