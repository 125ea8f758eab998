import json
import threading
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional

from spotcloud.domain.entities import MatchStatus


@dataclass
class ConversionMetrics:
    """Counters for a single conversion run."""
    playlist_id: str
    total_tracks: int = 0
    matched_count: int = 0
    not_found_count: int = 0
    error_count: int = 0
    query_count: int = 0
    search_failure_count: int = 0
    playlist_created: bool = False
    playlist_creation_failed: bool = False
    duration_ms: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def processed_tracks(self) -> int:
        return self.matched_count + self.not_found_count + self.error_count

    @property
    def match_rate(self) -> float:
        """Matched share of processed tracks (0.0 to 1.0)."""
        if self.processed_tracks == 0:
            return 0.0
        return self.matched_count / self.processed_tracks

    @property
    def queries_per_track(self) -> float:
        if self.processed_tracks == 0:
            return 0.0
        return self.query_count / self.processed_tracks


class MetricsCollector:
    """Collects metrics for a conversion run.

    Shared between the matcher (queries, search failures) and the pipeline
    (per-track outcomes, playlist creation).
    """

    def __init__(self, playlist_id: str = ""):
        self.metrics = ConversionMetrics(playlist_id=playlist_id)
        self._lock = threading.Lock()

    def start(self, playlist_id: Optional[str] = None, total_tracks: int = 0) -> None:
        """Mark run start."""
        with self._lock:
            if playlist_id is not None:
                self.metrics.playlist_id = playlist_id
            self.metrics.total_tracks = total_tracks
            self.metrics.start_time = datetime.now()

    def finish(self) -> None:
        """Mark run end."""
        with self._lock:
            self.metrics.end_time = datetime.now()
            if self.metrics.start_time:
                self.metrics.duration_ms = int(
                    (self.metrics.end_time - self.metrics.start_time).total_seconds() * 1000
                )

    def record_query(self) -> None:
        with self._lock:
            self.metrics.query_count += 1

    def record_search_failure(self) -> None:
        with self._lock:
            self.metrics.search_failure_count += 1

    def record_track(self, status: MatchStatus) -> None:
        """Record the outcome of one source track."""
        with self._lock:
            if status == MatchStatus.MATCHED:
                self.metrics.matched_count += 1
            elif status == MatchStatus.NOT_FOUND:
                self.metrics.not_found_count += 1
            else:
                self.metrics.error_count += 1

    def record_playlist_creation(self, success: bool) -> None:
        with self._lock:
            self.metrics.playlist_created = success
            self.metrics.playlist_creation_failed = not success

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for JSON serialization."""
        with self._lock:
            data = asdict(self.metrics)
            data['start_time'] = self.metrics.start_time.isoformat() if self.metrics.start_time else None
            data['end_time'] = self.metrics.end_time.isoformat() if self.metrics.end_time else None
            data['match_rate'] = self.metrics.match_rate
            data['queries_per_track'] = self.metrics.queries_per_track
            return data

    def save_to_file(self, file_path: str) -> None:
        """Save metrics to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
