"""
Time-reference tagging for rendered WAV files.

The time reference is the take's timeline origin in samples, so that other
tools can line the file up with the project.
"""

import logging
from pathlib import Path
from typing import Optional

from mutagen.id3 import TXXX
from mutagen.wave import WAVE

from ..timeline import Clip

logger = logging.getLogger(__name__)

TIME_REFERENCE_DESC = "time_reference"


def time_reference_samples(clip: Clip, sample_rate: Optional[float]) -> Optional[int]:
    """
    Sample position of the active take's origin on the timeline.

    Returns:
        (position - take start offset) * sample_rate, clamped at 0, or None
        when the sample rate is unknown or the clip has no take.
    """
    take = clip.active_take
    if take is None or not sample_rate or sample_rate <= 0:
        return None
    seconds = max(0.0, clip.position - take.start_offset)
    return int(round(seconds * sample_rate))


def embed_time_reference(path: str, samples: int) -> bool:
    """
    Write a time reference tag into a WAV file.

    Args:
        path: WAV file path.
        samples: Time reference in samples.

    Returns:
        True if written, False if skipped or failed (never raises).
    """
    p = Path(path)
    if p.suffix.lower() != ".wav":
        logger.debug(f"Time reference skipped (not WAV): {p}")
        return False
    if not p.exists():
        logger.warning(f"Time reference skipped (missing file): {p}")
        return False

    try:
        audio = WAVE(str(p))
        if audio.tags is None:
            audio.add_tags()
        audio.tags.delall(f"TXXX:{TIME_REFERENCE_DESC}")
        audio.tags.add(TXXX(encoding=3, desc=TIME_REFERENCE_DESC, text=[str(samples)]))
        audio.save()
    except Exception as e:
        logger.warning(f"Failed to embed time reference in {p}: {e}")
        return False

    logger.debug(f"Time reference {samples} written to {p}")
    return True


def read_time_reference(path: str) -> Optional[int]:
    """Read back the time reference tag, or None if absent/unreadable."""
    try:
        audio = WAVE(str(path))
    except Exception as e:
        logger.warning(f"Failed to read {path}: {e}")
        return None
    if audio.tags is None:
        return None
    frame = audio.tags.get(f"TXXX:{TIME_REFERENCE_DESC}")
    if frame is None or not frame.text:
        return None
    try:
        return int(frame.text[0])
    except ValueError:
        return None


def embed_for_clip(clip: Clip, sample_rate: Optional[float]) -> bool:
    """Embed the time reference into the active take's source file, if any."""
    take = clip.active_take
    if take is None or not take.source_path:
        return False
    samples = time_reference_samples(clip, sample_rate)
    if samples is None:
        return False
    return embed_time_reference(take.source_path, samples)
