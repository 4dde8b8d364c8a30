"""
ModBoard - Moderated anonymous discussion board

A small JSON-document-backed board with an administrator approval queue
for media attachments, optional user verification, and sliding-window
engagement ranking.
"""

__version__ = "0.1.0"
__author__ = "ModBoard Project"
