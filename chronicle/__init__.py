"""
chronicle - Versioned document history

Tracks externally-sourced documents (terms of service, privacy policies, ...)
over time, recording every change as a git commit.
"""

__version__ = "0.1.0"

# Configuration is available at top level for convenience
from chronicle.config import config

__all__ = ["config", "__version__"]
