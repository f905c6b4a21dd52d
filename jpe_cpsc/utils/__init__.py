"""
Shared utilities: exception taxonomy and logging setup.
"""
