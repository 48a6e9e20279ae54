"""Episode output directories, JSON artifacts and the run manifest."""

import json
import os
import re
from datetime import datetime, timezone

from voicecast.constants import OUTPUT_DIR, VERSION


def slug_from_path(script_path: str) -> str:
    """Convert a script filename to an episode directory slug.

    "Episode 12 - The Heist.md" → "episode_12_the_heist"
    """
    basename = os.path.splitext(os.path.basename(script_path))[0]
    # Replace non-alphanumeric with underscore, collapse multiples, strip edges
    return re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()


def init_episode_dir(script_path: str, output_base: str = OUTPUT_DIR) -> str:
    """Create output/<slug>/ and return its path."""
    episode_dir = os.path.join(output_base, slug_from_path(script_path))
    os.makedirs(episode_dir, exist_ok=True)
    return episode_dir


def write_artifact(episode_dir: str, filename: str, data: dict) -> str:
    """Write JSON artifact to episode_dir/filename.

    Returns path to the written file.
    """
    path = os.path.join(episode_dir, filename)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def write_manifest(
    episode_dir: str,
    processor,
    source: str = "",
    started_at: datetime | None = None,
) -> str:
    """Write metadata.json describing a processing run.

    Lists every processed and failed unit with the run's stats. Returns the
    manifest path.
    """
    finished_at = datetime.now(timezone.utc)
    stats = processor.get_stats()

    manifest = {
        "episode": os.path.basename(os.path.normpath(episode_dir)),
        "source": source,
        "producer_version": VERSION,
        "started_at": started_at.isoformat() if started_at else None,
        "processed_at": finished_at.isoformat(),
        "processing_seconds": round((finished_at - started_at).total_seconds(), 1) if started_at else None,
        "cancelled": processor.was_cancelled,
        "stats": {
            "total": stats.total,
            "completed": stats.completed,
            "failed": stats.failed,
            "remaining": stats.remaining,
        },
        "items": {
            "processed": [
                {
                    "id": r.unit.id,
                    "speaker": r.unit.speaker,
                    "index": r.unit.original_index,
                    "filename": r.filename,
                    "character_count": len(r.unit.text),
                }
                for r in processor.processed
            ],
            "failed": [
                {
                    "id": r.unit.id,
                    "speaker": r.unit.speaker,
                    "index": r.unit.original_index,
                    "error": r.error_message,
                }
                for r in processor.failed
            ],
        },
    }
    return write_artifact(episode_dir, "metadata.json", manifest)
