"""
Planning Module: turn a live clip selection into render work.

- Selection snapshot/restore
- Unit detection (touching/overlapping clips per track)
- Time-window classification (direct / windowed single / windowed global)
- Pre-split of clips straddling the window edges
"""

__all__ = ["selection", "units", "window", "presplit"]
