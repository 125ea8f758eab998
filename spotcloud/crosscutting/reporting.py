import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from spotcloud.domain.entities import ConversionMatch, ConversionResult, quality_distribution


def match_to_json(match: ConversionMatch) -> Dict[str, Any]:
    """Flatten a single match for export."""
    candidate = match.candidate
    return {
        "originalTrack": match.source_track.label,
        "matchedTrack": candidate.label if candidate else None,
        "matchScore": match.score,
        "status": match.status.value,
        "errorMessage": match.error_message,
        "url": candidate.permalink_url if candidate else None,
    }


def build_export(result: ConversionResult, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Serialize a conversion result to the flat export structure."""
    now = now or datetime.now(timezone.utc)
    created = result.created_playlist
    return {
        "originalPlaylist": {
            "name": result.original_playlist.name,
            "description": result.original_playlist.description,
            "trackCount": result.original_playlist.track_count,
        },
        "conversionDate": now.isoformat(),
        "successRate": result.success_rate,
        "successCount": result.success_count,
        "failureCount": result.failure_count,
        "qualityDistribution": quality_distribution(result.matches),
        "createdPlaylist": {
            "id": created.id,
            "url": created.url,
            "title": created.title,
        } if created else None,
        "matches": [match_to_json(m) for m in result.matches],
    }


def default_export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"playlist-conversion-{int(now.timestamp() * 1000)}.json"


def save_export(result: ConversionResult, path: str, now: Optional[datetime] = None) -> str:
    """Write the export as JSON.

    Args:
        result: Conversion result to export
        path: Target file, or a directory to place a default-named file in

    Returns:
        Path of the written file
    """
    if os.path.isdir(path):
        path = os.path.join(path, default_export_filename(now))
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(build_export(result, now), f, indent=2, ensure_ascii=False)
    return path
