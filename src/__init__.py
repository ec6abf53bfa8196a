"""
Messenger Relay Service - Facebook Page to language model relay.

This package receives Messenger webhook deliveries, keeps a bounded
per-user conversation memory, asks a generative language model for a
reply and sends it back through the Send API.
"""

__version__ = "1.0.0"
__description__ = "Relay between a Facebook Page inbox and a generative language model"

# Package metadata
__title__ = "messenger-relay"

# Semantic version components
VERSION_INFO = (1, 0, 0)

__all__ = [
    "__version__",
    "__description__",
    "__title__",
    "VERSION_INFO",
]
