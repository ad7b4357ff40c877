"""
Core components of ckload: bulk-load buffers and connection configs.
"""
from .bulk import BufferState, BulkLoadBuffer
from .config import ConnectionEntry, ConnectionsConfig, load_connections_config

__all__ = [
    "BulkLoadBuffer",
    "BufferState",
    "ConnectionEntry",
    "ConnectionsConfig",
    "load_connections_config",
]
