import logging
import os
from datetime import datetime

from flask import Flask, jsonify, request

from spotcloud.application.matching import TrackMatcher
from spotcloud.application.pipeline import PlaylistConverter
from spotcloud.crosscutting.config import get_secret_manager
from spotcloud.crosscutting.logging import CorrelationContext
from spotcloud.crosscutting.reporting import build_export
from spotcloud.domain.errors import AuthenticationFailed, ConversionError, is_recoverable
from spotcloud.infrastructure.providers.soundcloud import SoundCloudTargetCatalog
from spotcloud.infrastructure.providers.spotify import SpotifySourceCatalog


class HTTPServer:
    """HTTP server exposing playlist listing and conversion."""

    def __init__(self, host: str = 'localhost', port: int = 3000, debug: bool = False):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    @staticmethod
    def _bearer_token() -> str:
        header = request.headers.get('Authorization', '')
        if header.startswith('Bearer '):
            return header[len('Bearer '):].strip()
        return ''

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'SpotCloud HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'spotify_playlists': '/api/spotify/playlists',
                    'convert': '/api/convert'
                }
            }), 200

        @self.app.route('/api/spotify/playlists', methods=['GET'])
        def spotify_playlists():
            """List the caller's Spotify playlists."""
            token = self._bearer_token()
            if not token:
                return jsonify({'error': 'Missing bearer token'}), 401

            try:
                playlists = SpotifySourceCatalog(token).list_playlists()
            except AuthenticationFailed as e:
                return jsonify({'error': str(e)}), 401
            except Exception as e:
                self.logger.error(f"Failed to list playlists: {e}")
                return jsonify({'error': 'Failed to list playlists', 'details': str(e)}), 500

            return jsonify({
                'playlists': [{
                    'id': p.id,
                    'name': p.name,
                    'description': p.description,
                    'owner': p.owner,
                    'trackCount': p.track_count,
                    'public': p.is_public,
                } for p in playlists]
            }), 200

        @self.app.route('/api/convert', methods=['POST'])
        def convert():
            """Convert a playlist and return the export document."""
            payload = request.get_json(silent=True) or {}
            missing = [key for key in ('playlistId', 'spotifyToken', 'soundcloudToken') if not payload.get(key)]
            if missing:
                return jsonify({
                    'error': 'Missing required fields',
                    'fields': missing
                }), 400

            playlist_id = payload['playlistId']
            try:
                settings = get_secret_manager().get_matching_config()
                converter = PlaylistConverter(
                    source_catalog=SpotifySourceCatalog(payload['spotifyToken']),
                    target_catalog=SoundCloudTargetCatalog(
                        payload['soundcloudToken'],
                        search_limit=settings['search_limit'],
                        timeout=settings['http_timeout'],
                    ),
                    matcher=TrackMatcher(settings['match_threshold']),
                )
                with CorrelationContext(playlist_id=playlist_id):
                    result = converter.convert_playlist(playlist_id, dry_run=bool(payload.get('dryRun')))
            except ConversionError as e:
                return jsonify({
                    'error': str(e),
                    'recoverable': is_recoverable(e)
                }), 422
            except Exception as e:
                self.logger.error(f"Conversion of playlist {playlist_id} failed: {e}")
                return jsonify({
                    'error': 'Internal server error',
                    'details': str(e)
                }), 500

            return jsonify(build_export(result)), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting SpotCloud HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app() -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer()
    return server.app


if __name__ == '__main__':
    server = HTTPServer()
    server.run()
