"""VibeMaster simulation gateway.

This package exposes the start/stop/world-state commands to the front-end
over a FastAPI app and bridges world-state requests to an external engine,
substituting a fixed fallback payload when the engine is unavailable.
"""

__version__ = "0.2.0"
