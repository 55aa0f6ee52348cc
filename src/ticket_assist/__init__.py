"""
Ticket Assist
=============

Support-ticket assistant backend: similarity search over historical tickets.
"""

__version__ = "1.0.0"
