"""
Greenlight movie catalog API.

A JSON REST API over an in-memory movie catalog with per-client rate
limiting and tracked background work. See DESIGN.md for full details.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
