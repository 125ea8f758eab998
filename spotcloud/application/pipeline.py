import logging
from typing import List, Optional

from spotcloud.application.matching import TrackMatcher
from spotcloud.crosscutting.logging import (
    CorrelationContext,
    log_conversion_complete,
    log_conversion_start,
    log_error,
)
from spotcloud.crosscutting.metrics import MetricsCollector
from spotcloud.domain.entities import (
    ConversionMatch,
    ConversionResult,
    CreatedPlaylist,
    PlaylistSummary,
    SourceTrack,
)
from spotcloud.domain.errors import ConversionError
from spotcloud.domain.ports import ProgressCallback, SourceCatalog, TargetCatalog


logger = logging.getLogger(__name__)

MATCHING_PROGRESS_SHARE = 80
CREATING_PROGRESS = 90
COMPLETE_PROGRESS = 100

DEFAULT_PLAYLIST_NAME = "Spotify Playlist"
CONVERTED_TITLE = "Converted from Spotify"


class ProgressTracker:
    """Reports conversion progress to an optional callback and to the log."""

    def __init__(self, total_tracks: int,
                 callback: Optional[ProgressCallback] = None,
                 log_every: int = 10):
        """Initialize progress tracker.

        Args:
            total_tracks: Total number of tracks to process
            callback: Optional progress sink receiving (percent, label)
            log_every: Log a progress line every N tracks
        """
        self.total_tracks = total_tracks
        self.callback = callback
        self.log_every = log_every
        self.processed_tracks = 0
        self.matched_tracks = 0

    def _report(self, percent: float, label: Optional[str]) -> None:
        if self.callback is not None:
            self.callback(percent, label)

    def track_started(self, index: int, track: SourceTrack) -> None:
        """Report the start of track `index`; the first 80% covers the match phase."""
        percent = (index / self.total_tracks) * MATCHING_PROGRESS_SHARE
        self._report(percent, track.label)

    def track_finished(self, match: ConversionMatch) -> None:
        self.processed_tracks += 1
        if match.candidate is not None:
            self.matched_tracks += 1

        if self.processed_tracks % self.log_every == 0 or self.processed_tracks == self.total_tracks:
            progress_pct = (self.processed_tracks / self.total_tracks) * 100
            logger.info(f"Progress: {self.processed_tracks}/{self.total_tracks} tracks ({progress_pct:.1f}%), "
                        f"matched: {self.matched_tracks}")

    def creating_playlist(self) -> None:
        self._report(CREATING_PROGRESS, "Creating SoundCloud playlist...")

    def completed(self) -> None:
        self._report(COMPLETE_PROGRESS, "Conversion complete!")


class PlaylistConverter:
    """Converts a Spotify playlist into a SoundCloud playlist."""

    def __init__(self,
                 source_catalog: SourceCatalog,
                 target_catalog: TargetCatalog,
                 matcher: Optional[TrackMatcher] = None,
                 metrics: Optional[MetricsCollector] = None):
        """Initialize the converter.

        Args:
            source_catalog: Catalog the playlist is read from (Spotify)
            target_catalog: Catalog tracks are searched in and the playlist is created on (SoundCloud)
            matcher: Track matcher, a default one is created when omitted
            metrics: Optional metrics collector shared with the matcher
        """
        self.source_catalog = source_catalog
        self.target_catalog = target_catalog
        self.metrics = metrics
        self.matcher = matcher or TrackMatcher(metrics=metrics)

    def convert_playlist(self,
                         playlist_id: str,
                         on_progress: Optional[ProgressCallback] = None,
                         dry_run: bool = False) -> ConversionResult:
        """Match every track of a playlist and create the target playlist.

        Args:
            playlist_id: Source playlist identifier
            on_progress: Optional callback receiving (percent, label)
            dry_run: Match only, never create the target playlist

        Returns:
            ConversionResult with one ConversionMatch per source track, in source order

        Raises:
            ConversionError: If fetching the source tracks fails or the playlist is empty
        """
        with CorrelationContext(playlist_id=playlist_id, stage='fetching'):
            source_tracks = self._fetch_tracks(playlist_id)
            summary = self._build_summary(playlist_id, len(source_tracks))

        if self.metrics:
            self.metrics.start(playlist_id, len(source_tracks))
        log_conversion_start(logger, playlist_id, len(source_tracks), dry_run=dry_run)

        progress = ProgressTracker(len(source_tracks), on_progress)
        with CorrelationContext(playlist_id=playlist_id, stage='matching'):
            matches = [self._match_track(index, track, progress)
                       for index, track in enumerate(source_tracks)]

        success_count = sum(1 for m in matches if m.candidate is not None)
        failure_count = len(matches) - success_count

        created_playlist = None
        if success_count > 0:
            with CorrelationContext(playlist_id=playlist_id, stage='creating'):
                created_playlist = self._create_target_playlist(
                    summary, matches, success_count, progress, dry_run
                )

        progress.completed()
        if self.metrics:
            self.metrics.finish()
        statistics = self.matcher.get_match_statistics(matches)
        log_conversion_complete(
            logger, playlist_id, success_count, failure_count,
            created_playlist_id=created_playlist.id if created_playlist else None,
            match_rate=statistics["match_rate"],
            quality=statistics["quality"],
        )

        return ConversionResult(
            original_playlist=summary,
            matches=matches,
            success_count=success_count,
            failure_count=failure_count,
            created_playlist=created_playlist,
        )

    def _fetch_tracks(self, playlist_id: str) -> List[SourceTrack]:
        logger.info(f"Fetching tracks of playlist {playlist_id}")
        try:
            source_tracks = list(self.source_catalog.get_playlist_tracks(playlist_id))
        except Exception as e:
            log_error(logger, "Failed to fetch source tracks", e)
            raise ConversionError(str(e)) from e

        if not source_tracks:
            raise ConversionError("No tracks found in the Spotify playlist")
        return source_tracks

    def _build_summary(self, playlist_id: str, track_count: int) -> PlaylistSummary:
        """Summary of the source playlist; metadata lookup failures fall back to defaults."""
        name = DEFAULT_PLAYLIST_NAME
        description = ""
        try:
            playlist = self.source_catalog.get_playlist(playlist_id)
            name = playlist.name or DEFAULT_PLAYLIST_NAME
            description = playlist.description or ""
        except Exception as e:
            logger.warning(f"Could not load metadata of playlist {playlist_id}: {e}")

        return PlaylistSummary(
            id=playlist_id,
            name=name,
            description=description,
            track_count=track_count,
        )

    def _match_track(self, index: int, track: SourceTrack, progress: ProgressTracker) -> ConversionMatch:
        progress.track_started(index, track)
        try:
            candidate = self.matcher.find_best_match(track, self.target_catalog.search_tracks)
            if candidate is not None:
                score = self.matcher.calculate_match_score(track, candidate)
                match = ConversionMatch.matched(track, candidate, score)
            else:
                match = ConversionMatch.not_found(track)
        except Exception as e:
            logger.error(f"Error processing track {index} ({track.label}): {e}")
            match = ConversionMatch.error(track, str(e) or "Unknown error")

        if self.metrics:
            self.metrics.record_track(match.status)
        progress.track_finished(match)
        return match

    def _create_target_playlist(self,
                                summary: PlaylistSummary,
                                matches: List[ConversionMatch],
                                success_count: int,
                                progress: ProgressTracker,
                                dry_run: bool) -> Optional[CreatedPlaylist]:
        """Best effort: a failure is logged and the conversion still succeeds."""
        title = playlist_title(summary)
        description = f"Converted from Spotify playlist with {success_count}/{len(matches)} tracks matched"
        candidates = [m.candidate for m in matches if m.candidate is not None]

        if dry_run:
            logger.info(f"DRY-RUN: Would create playlist '{title}' with {len(candidates)} tracks")
            return None

        progress.creating_playlist()
        try:
            created = self.target_catalog.create_playlist(title, description, candidates)
        except Exception as e:
            log_error(logger, "Failed to create SoundCloud playlist", e, title=title)
            if self.metrics:
                self.metrics.record_playlist_creation(False)
            return None

        if self.metrics:
            self.metrics.record_playlist_creation(True)
        logger.info(f"Created playlist '{created.title}' ({created.url})")
        return created


def playlist_title(summary: PlaylistSummary) -> str:
    """Title of the target playlist, naming its Spotify origin."""
    if summary.name and summary.name != DEFAULT_PLAYLIST_NAME:
        return f"{summary.name} ({CONVERTED_TITLE})"
    return CONVERTED_TITLE
