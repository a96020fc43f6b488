"""
Backend-independent control core.
"""
