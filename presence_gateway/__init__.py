"""
Presence Gateway.

Real-time presence tracking and addressed message relay over WebSockets.
"""

__version__ = "1.0.0"
