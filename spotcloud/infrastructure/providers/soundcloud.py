import logging
from typing import Any, Dict, List, Optional

import requests

from spotcloud.domain.entities import CandidateTrack, CreatedPlaylist
from spotcloud.domain.errors import TemporaryFailure, error_from_status
from spotcloud.domain.ports import TargetCatalog

logger = logging.getLogger(__name__)

SERVICE_NAME = "SoundCloud"
DEFAULT_BASE_URL = "https://api.soundcloud.com"


class SoundCloudTargetCatalog(TargetCatalog):
    """SoundCloud adapter for track search and playlist creation."""

    def __init__(self,
                 access_token: str,
                 base_url: str = DEFAULT_BASE_URL,
                 search_limit: int = 20,
                 timeout: float = 15,
                 session: Optional[requests.Session] = None):
        """Initialize SoundCloud catalog.

        Args:
            access_token: SoundCloud OAuth access token
            base_url: API root
            search_limit: Maximum results per search query
            timeout: HTTP timeout in seconds
            session: requests session (tests inject a mock here)
        """
        self.access_token = access_token
        self.base_url = base_url.rstrip('/')
        self.search_limit = search_limit
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            'Authorization': f'OAuth {access_token}',
            'Accept': 'application/json',
        })

    def _request(self, method: str, path: str, operation: str, **kwargs) -> Any:
        """Perform a request and decode JSON, mapping failures to domain errors."""
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.warning(f"SoundCloud {operation} request failed: {e}")
            raise TemporaryFailure(f"Network error during {operation}: {e}") from e

        if not response.ok:
            message = self._error_message(response)
            logger.warning(f"SoundCloud {operation} failed: {response.status_code} - {message}")
            raise error_from_status(
                response.status_code,
                SERVICE_NAME,
                message=message,
                retry_after=response.headers.get('Retry-After'),
            )

        try:
            return response.json()
        except ValueError as e:
            raise TemporaryFailure(f"Invalid JSON in SoundCloud {operation} response") from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or ''
        if isinstance(body, dict):
            errors = body.get('errors')
            if errors and isinstance(errors, list) and isinstance(errors[0], dict):
                return errors[0].get('error_message', '')
            return body.get('error') or body.get('message') or ''
        return ''

    @staticmethod
    def _track_to_domain(item: Dict[str, Any]) -> Optional[CandidateTrack]:
        if not item or item.get('id') is None:
            return None
        user = item.get('user') or {}
        return CandidateTrack(
            id=str(item['id']),
            title=item.get('title') or '',
            username=user.get('username') or '',
            duration_ms=item.get('duration'),
            permalink_url=item.get('permalink_url'),
            artwork_url=item.get('artwork_url'),
            stream_url=item.get('stream_url'),
        )

    def search_tracks(self, query: str) -> List[CandidateTrack]:
        """Search tracks by free text; an empty list when nothing matches."""
        data = self._request(
            'GET', '/tracks', 'search',
            params={'q': query, 'limit': self.search_limit},
        )
        items = data if isinstance(data, list) else (data or {}).get('collection') or []
        candidates = [c for c in (self._track_to_domain(item) for item in items) if c]
        logger.debug(f"SoundCloud search '{query}' returned {len(candidates)} tracks")
        return candidates

    def create_playlist(self, title: str, description: str,
                        tracks: List[CandidateTrack]) -> CreatedPlaylist:
        """Create a public playlist holding `tracks` in order."""
        payload = {
            'playlist': {
                'title': title,
                'description': description,
                'sharing': 'public',
                'tracks': [{'id': track.id} for track in tracks],
            }
        }
        data = self._request('POST', '/playlists', 'create playlist', json=payload)
        logger.info(f"Created SoundCloud playlist {data.get('id')} with {len(tracks)} tracks")
        return CreatedPlaylist(
            id=str(data.get('id')),
            url=data.get('permalink_url') or '',
            title=data.get('title') or title,
        )
