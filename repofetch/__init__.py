"""
repofetch: turns repository configuration into ready-to-run download sessions.
"""

__version__ = "0.1.0"
