"""
Render Module: per-unit render orchestration against an external engine.

- Channel policy resolution (source playback / source track / target track)
- Effect isolation with guaranteed restore
- Synchronous engine invoker with transient channel-policy handshake
- Output naming (-AS<n>- version tags, FIFO-capped effect tokens)
- Effect copy onto takes, time-reference embedding
"""

__all__ = ["channels", "isolation", "engine", "offline", "naming", "fx_copy", "metadata"]
