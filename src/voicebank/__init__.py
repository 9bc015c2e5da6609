"""
voicebank backend
Wallet-keyed voice data collection with pluggable audio storage
"""

__version__ = "0.1.0"

from .config import settings

__all__ = ["settings", "__version__"]
