"""
Group sync client for the chat router backend
"""

__version__ = "1.0.0"
