import logging
from typing import Any, Dict, List, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from spotcloud.domain.entities import SourcePlaylist, SourceTrack
from spotcloud.domain.errors import TemporaryFailure, error_from_status
from spotcloud.domain.ports import SourceCatalog

logger = logging.getLogger(__name__)

SERVICE_NAME = "Spotify"
TRACKS_PAGE_SIZE = 100
PLAYLISTS_PAGE_SIZE = 50


class SpotifySourceCatalog(SourceCatalog):
    """Spotify adapter reading playlists and their tracks."""

    def __init__(self,
                 access_token: str,
                 client: Optional[spotipy.Spotify] = None,
                 requests_timeout: int = 15):
        """Initialize Spotify catalog.

        Args:
            access_token: Spotify OAuth access token
            client: Preconfigured spotipy client (tests inject a mock here)
            requests_timeout: HTTP timeout in seconds for the default client
        """
        self.access_token = access_token
        self._client = client or spotipy.Spotify(auth=access_token, requests_timeout=requests_timeout)

    def _translate_error(self, error: Exception, operation: str) -> Exception:
        """Map spotipy / transport errors to domain errors."""
        if isinstance(error, SpotifyException):
            headers = getattr(error, 'headers', None) or {}
            return error_from_status(
                error.http_status,
                SERVICE_NAME,
                message=getattr(error, 'msg', str(error)),
                retry_after=headers.get('Retry-After'),
            )
        if isinstance(error, requests.exceptions.RequestException):
            return TemporaryFailure(f"Network error during {operation}: {error}")
        return TemporaryFailure(f"Failed to {operation}: {error}")

    @staticmethod
    def _track_to_domain(track_data: Dict[str, Any]) -> Optional[SourceTrack]:
        """Convert a Spotify track object, skipping local files and unavailable entries."""
        if not track_data or not track_data.get('id') or track_data.get('is_local'):
            return None
        if track_data.get('type', 'track') != 'track':
            return None

        artists = [a.get('name') for a in track_data.get('artists') or [] if a.get('name')]
        external_urls = track_data.get('external_urls') or {}

        return SourceTrack(
            id=track_data['id'],
            title=track_data.get('name') or '',
            artists=artists,
            duration_ms=int(track_data.get('duration_ms') or 0),
            external_url=external_urls.get('spotify'),
        )

    @staticmethod
    def _playlist_to_domain(playlist: Dict[str, Any]) -> SourcePlaylist:
        owner = playlist.get('owner') or {}
        return SourcePlaylist(
            id=playlist['id'],
            name=playlist.get('name') or '',
            description=playlist.get('description') or '',
            owner=owner.get('display_name') or owner.get('id') or '',
            track_count=(playlist.get('tracks') or {}).get('total', 0),
            is_public=bool(playlist.get('public')),
        )

    def get_playlist_tracks(self, playlist_id: str) -> List[SourceTrack]:
        """List tracks of a playlist in playlist order.

        Args:
            playlist_id: Spotify playlist ID

        Returns:
            List of source tracks
        """
        tracks: List[SourceTrack] = []
        offset = 0

        try:
            while True:
                page = self._client.playlist_items(
                    playlist_id,
                    limit=TRACKS_PAGE_SIZE,
                    offset=offset,
                    additional_types=('track',),
                )
                items = (page or {}).get('items') or []

                for item in items:
                    track = self._track_to_domain(item.get('track'))
                    if track:
                        tracks.append(track)

                if not page.get('next') or len(items) < TRACKS_PAGE_SIZE:
                    break
                offset += TRACKS_PAGE_SIZE

        except Exception as e:
            logger.error(f"Failed to list tracks for playlist {playlist_id}: {e}")
            raise self._translate_error(e, "list playlist tracks") from e

        logger.info(f"Fetched {len(tracks)} tracks from Spotify playlist {playlist_id}")
        return tracks

    def get_playlist(self, playlist_id: str) -> SourcePlaylist:
        """Fetch playlist metadata."""
        try:
            playlist = self._client.playlist(
                playlist_id,
                fields='id,name,description,public,owner(id,display_name),tracks(total)',
            )
        except Exception as e:
            raise self._translate_error(e, "get playlist") from e
        return self._playlist_to_domain(playlist)

    def list_playlists(self) -> List[SourcePlaylist]:
        """List playlists of the current user."""
        playlists: List[SourcePlaylist] = []
        offset = 0

        try:
            while True:
                page = self._client.current_user_playlists(limit=PLAYLISTS_PAGE_SIZE, offset=offset)
                items = (page or {}).get('items') or []
                playlists.extend(self._playlist_to_domain(p) for p in items if p)

                if not page.get('next') or len(items) < PLAYLISTS_PAGE_SIZE:
                    break
                offset += PLAYLISTS_PAGE_SIZE

        except Exception as e:
            logger.error(f"Failed to list playlists: {e}")
            raise self._translate_error(e, "list playlists") from e

        return playlists
