#!/usr/bin/env python3
"""
Apply AudioSweet to a saved session.

Usage:
  python src/scripts/apply_session.py <session.json> [output.json]

The session JSON holds the project (sample_rate, time_window, tracks with
effects and clips) plus an optional "focus": {"track": <index>, "effect": <index>}.
Settings come from AUDIOSWEET_CONFIG_PATH or configs/audiosweet.toml.

Exit codes: 0 ok, 1 failure, 2 nothing to do, 130 interrupted.
"""

import sys
import json
import logging
from pathlib import Path

# Add src/ to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from audiosweet.config import Config, ConfigError, RunSettings
from audiosweet.errors import AudioSweetError, NoFocusTargetError, NoSelectionError
from audiosweet.pipeline import AudioSweetPipeline, FocusTarget
from audiosweet.timeline import Project

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _focus_from_session(project, data):
    focus = data.get("focus")
    if not focus:
        return None
    tracks = list(project.tracks.values())
    track_idx = int(focus.get("track", 0))
    if not (0 <= track_idx < len(tracks)):
        raise NoFocusTargetError(f"Focus track index {track_idx} out of range")
    effect = focus.get("effect")
    return FocusTarget(tracks[track_idx], int(effect) if effect is not None else None)


def main():
    """Apply entrypoint."""
    if len(sys.argv) < 2:
        logger.error("Usage: apply_session.py <session.json> [output.json]")
        return 1

    session_path = Path(sys.argv[1])
    output_path = Path(sys.argv[2]) if len(sys.argv) > 2 else session_path

    try:
        config = Config.load()
        settings = RunSettings.from_config(config)
        if settings.debug:
            logging.getLogger("audiosweet").setLevel(logging.DEBUG)
        logger.info(f"Config loaded: {config}")

        with open(session_path, "r") as f:
            data = json.load(f)
        project = Project.from_dict(data)
        focus = _focus_from_session(project, data)

        report = AudioSweetPipeline(project, settings).run(focus)

        out = project.to_dict()
        if data.get("focus"):
            out["focus"] = data["focus"]
        with open(output_path, "w") as f:
            json.dump(out, f, indent=2)
        logger.info(f"Session written: {output_path}")

        if not report.ok:
            return 1
        if not report.results and not report.copied:
            logger.warning("Nothing was processed")
            return 2
        return 0

    except (NoSelectionError, NoFocusTargetError) as e:
        logger.warning(f"Nothing to do: {e}")
        return 2
    except KeyboardInterrupt:
        logger.warning("Apply interrupted by user")
        return 130
    except (ConfigError, AudioSweetError) as e:
        logger.error(f"Apply failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Apply failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
