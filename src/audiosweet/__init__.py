# AudioSweet: non-destructive effect rendering onto selected timeline clips
# Package: src.audiosweet

__version__ = "0.2.0"
__author__ = "AudioSweet Contributors"
__description__ = "Unit compiler and time-window render pipeline for clip-based audio editors"

# Module structure:
#   - audiosweet.timeline : Host model (tracks, clips, takes, effects)
#   - audiosweet.plan     : Selection snapshot, unit detection, window classification, pre-split
#   - audiosweet.render   : Channel policy, effect isolation, engine invoker, naming, copy
#   - audiosweet.pipeline : Top-level orchestrator
#   - audiosweet.config   : Configuration management
