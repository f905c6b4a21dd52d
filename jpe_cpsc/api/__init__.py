"""
HTTP surface over a synchronous controller context.
"""

from jpe_cpsc.api.app import create_app

__all__ = ["create_app"]
