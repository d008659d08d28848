"""
Pipeline error kinds.

Errors raised before any host mutation (NoSelectionError, NoFocusTargetError)
abort the whole run. Engine errors raised while a unit is being processed are
caught by the orchestrator, recorded, and the next unit is attempted.
"""


class AudioSweetError(Exception):
    """Base class for all pipeline errors."""
    pass


class NoSelectionError(AudioSweetError):
    """Raised when there are no selected clips to process."""
    pass


class NoFocusTargetError(AudioSweetError):
    """Raised when focused-effect mode is requested without a target effect."""
    pass


class EngineLoadError(AudioSweetError):
    """Raised when the render engine cannot be imported or constructed."""
    pass


class EngineCallError(AudioSweetError):
    """Raised when a render call raises or reports failure."""
    pass


class MissingOutputSelectionError(EngineCallError):
    """Raised when the engine reports success but leaves no output clip selected."""
    pass
