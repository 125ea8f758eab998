from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


@dataclass(frozen=True)
class SourceTrack:
    """Track entry of the playlist being converted (Spotify side)."""

    id: str
    title: str = ""
    artists: List[str] = None
    duration_ms: int = 0
    external_url: Optional[str] = None

    def __post_init__(self):
        if self.artists is None:
            object.__setattr__(self, 'artists', [])

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""

    @property
    def label(self) -> str:
        """Human readable "title by artists" label used for progress and exports."""
        return f"{self.title} by {', '.join(self.artists)}"


@dataclass(frozen=True)
class CandidateTrack:
    """Search result from the target catalog (SoundCloud side)."""

    id: str
    title: str
    username: str = ""
    duration_ms: Optional[int] = None
    permalink_url: Optional[str] = None
    artwork_url: Optional[str] = None
    stream_url: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.title} by {self.username}"


QUALITY_BUCKETS = (
    ("excellent", 0.8),
    ("good", 0.6),
    ("fair", 0.4),
)


def match_quality(score: float) -> str:
    """Grade a match score into excellent / good / fair / poor."""
    for name, lower_bound in QUALITY_BUCKETS:
        if score >= lower_bound:
            return name
    return "poor"


def quality_distribution(matches: List["ConversionMatch"]) -> Dict[str, int]:
    """Count matched entries per quality grade."""
    distribution = {name: 0 for name, _ in QUALITY_BUCKETS}
    distribution["poor"] = 0
    for match in matches:
        if match.status == MatchStatus.MATCHED:
            distribution[match_quality(match.score)] += 1
    return distribution


class MatchStatus(str, Enum):
    """Outcome of matching a single source track."""

    MATCHED = "matched"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class ConversionMatch:
    """Per-track outcome. The candidate is present iff status is matched."""

    source_track: SourceTrack
    candidate: Optional[CandidateTrack]
    score: float
    status: MatchStatus
    error_message: Optional[str] = None

    @classmethod
    def matched(cls, source_track: SourceTrack, candidate: CandidateTrack, score: float) -> "ConversionMatch":
        return cls(source_track=source_track, candidate=candidate, score=score, status=MatchStatus.MATCHED)

    @classmethod
    def not_found(cls, source_track: SourceTrack) -> "ConversionMatch":
        return cls(source_track=source_track, candidate=None, score=0.0, status=MatchStatus.NOT_FOUND)

    @classmethod
    def error(cls, source_track: SourceTrack, message: str) -> "ConversionMatch":
        return cls(
            source_track=source_track,
            candidate=None,
            score=0.0,
            status=MatchStatus.ERROR,
            error_message=message,
        )


@dataclass(frozen=True)
class SourcePlaylist:
    """Playlist as listed by the source catalog."""

    id: str
    name: str
    description: str = ""
    owner: str = ""
    track_count: int = 0
    is_public: bool = False


@dataclass(frozen=True)
class PlaylistSummary:
    """Summary of the original playlist carried in the conversion result."""

    name: str
    description: str
    track_count: int
    id: Optional[str] = None


@dataclass(frozen=True)
class CreatedPlaylist:
    """Descriptor of the playlist created on the target catalog."""

    id: str
    url: str
    title: str


@dataclass
class ConversionResult:
    """Result of a single conversion run."""

    original_playlist: PlaylistSummary
    matches: List[ConversionMatch] = field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0
    created_playlist: Optional[CreatedPlaylist] = None

    @property
    def success_rate(self) -> float:
        """Share of matched tracks as a percentage (0.0 to 100.0)."""
        if not self.matches:
            return 0.0
        return (self.success_count / len(self.matches)) * 100

    def matched_candidates(self) -> List[CandidateTrack]:
        """Candidates of matched tracks, in source playlist order."""
        return [m.candidate for m in self.matches if m.candidate is not None]
