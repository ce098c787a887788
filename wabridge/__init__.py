"""
wabridge - canonicalization and reply-context helpers for WhatsApp/Chatwoot bridges
"""

__version__ = "0.1.0"
