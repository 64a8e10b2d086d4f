"""
quantopts API Module

User-facing interfaces:
- cli: Command-line interface (quantopts command)
"""

__all__ = [
    "cli",
]
