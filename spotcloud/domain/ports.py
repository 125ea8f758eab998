from __future__ import annotations

from typing import Callable, List, Optional, Protocol

from .entities import CandidateTrack, CreatedPlaylist, SourcePlaylist, SourceTrack


ProgressCallback = Callable[[float, Optional[str]], None]


class SourceCatalog(Protocol):
    """Port for the catalog playlists are read from.

    Implementations map provider payloads into domain entities and raise domain errors.
    """

    def get_playlist_tracks(self, playlist_id: str) -> List[SourceTrack]:
        """Return the playlist's tracks in playlist order."""

    def get_playlist(self, playlist_id: str) -> SourcePlaylist:
        """Return metadata of a single playlist."""

    def list_playlists(self) -> List[SourcePlaylist]:
        """Return playlists visible to the current user."""


class TargetCatalog(Protocol):
    """Port for the catalog tracks are searched in and playlists are created on."""

    def search_tracks(self, query: str) -> List[CandidateTrack]:
        """Return ranked candidates for a free-text query; empty list when nothing matches."""

    def create_playlist(self, title: str, description: str,
                        tracks: List[CandidateTrack]) -> CreatedPlaylist:
        """Create a playlist containing `tracks` in the given order."""
