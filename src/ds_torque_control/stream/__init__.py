"""
Transport for task-space commands computed in another process.
"""

from .zmq_stream import DEFAULT_ADDRESS, Replier, Requester

__all__ = [
    'DEFAULT_ADDRESS',
    'Replier',
    'Requester',
]
