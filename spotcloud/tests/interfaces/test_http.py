import json
from unittest.mock import Mock, patch

from spotcloud.domain.entities import CandidateTrack, CreatedPlaylist, SourcePlaylist, SourceTrack
from spotcloud.domain.errors import AuthenticationFailed, TemporaryFailure
from spotcloud.interfaces.http import HTTPServer, create_app

MATCHING_CONFIG = {'search_limit': 20, 'match_threshold': 0.3, 'http_timeout': 15.0}


class TestHTTPServer:
    """Tests for HTTP server functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.server = HTTPServer(host='localhost', port=3001, debug=False)
        self.app = self.server.app
        self.client = self.app.test_client()

        secrets = Mock()
        secrets.get_matching_config.return_value = MATCHING_CONFIG
        self.secrets_patch = patch('spotcloud.interfaces.http.get_secret_manager', return_value=secrets)
        self.secrets_patch.start()

    def teardown_method(self):
        self.secrets_patch.stop()

    def test_health_check(self):
        response = self.client.get('/health')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['version'] == '0.1.0'
        assert 'timestamp' in data
        assert 'commit' in data

    def test_root_endpoint(self):
        response = self.client.get('/')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['service'] == 'SpotCloud HTTP Interface'
        assert data['endpoints']['convert'] == '/api/convert'
        assert data['endpoints']['spotify_playlists'] == '/api/spotify/playlists'

    def test_create_app(self):
        app = create_app()

        assert app.test_client().get('/health').status_code == 200

    def test_playlists_requires_bearer_token(self):
        response = self.client.get('/api/spotify/playlists')

        assert response.status_code == 401

    @patch('spotcloud.interfaces.http.SpotifySourceCatalog')
    def test_playlists_success(self, mock_catalog_class):
        mock_catalog_class.return_value.list_playlists.return_value = [
            SourcePlaylist(id='pl1', name='Chill', description='d', owner='Alex', track_count=4, is_public=True)
        ]

        response = self.client.get('/api/spotify/playlists', headers={'Authorization': 'Bearer abc'})

        assert response.status_code == 200
        mock_catalog_class.assert_called_once_with('abc')
        assert json.loads(response.data)['playlists'] == [{
            'id': 'pl1', 'name': 'Chill', 'description': 'd', 'owner': 'Alex', 'trackCount': 4, 'public': True,
        }]

    @patch('spotcloud.interfaces.http.SpotifySourceCatalog')
    def test_playlists_rejected_token(self, mock_catalog_class):
        mock_catalog_class.return_value.list_playlists.side_effect = AuthenticationFailed('Spotify')

        response = self.client.get('/api/spotify/playlists', headers={'Authorization': 'Bearer expired'})

        assert response.status_code == 401

    def test_convert_missing_fields(self):
        response = self.client.post('/api/convert', json={'playlistId': 'pl1'})

        assert response.status_code == 400
        assert json.loads(response.data)['fields'] == ['spotifyToken', 'soundcloudToken']

    def test_convert_without_body(self):
        response = self.client.post('/api/convert', data='not json', content_type='text/plain')

        assert response.status_code == 400

    @patch('spotcloud.interfaces.http.SoundCloudTargetCatalog')
    @patch('spotcloud.interfaces.http.SpotifySourceCatalog')
    def test_convert_success(self, mock_source_class, mock_target_class):
        source = mock_source_class.return_value
        source.get_playlist_tracks.return_value = [
            SourceTrack(id='s1', title='Song', artists=['Artist'], duration_ms=200000)
        ]
        source.get_playlist.return_value = SourcePlaylist(id='pl1', name='Chill')
        target = mock_target_class.return_value
        target.search_tracks.return_value = [
            CandidateTrack(id='1', title='Song', username='Artist', duration_ms=200000)
        ]
        target.create_playlist.return_value = CreatedPlaylist(id='9', url='https://soundcloud.com/me/sets/chill',
                                                              title='Chill (Converted from Spotify)')

        response = self.client.post('/api/convert', json={
            'playlistId': 'pl1', 'spotifyToken': 'sp', 'soundcloudToken': 'sc',
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['successCount'] == 1
        assert data['createdPlaylist']['title'] == 'Chill (Converted from Spotify)'
        mock_source_class.assert_called_once_with('sp')
        mock_target_class.assert_called_once_with('sc', search_limit=20, timeout=15.0)

    @patch('spotcloud.interfaces.http.SoundCloudTargetCatalog')
    @patch('spotcloud.interfaces.http.SpotifySourceCatalog')
    def test_convert_dry_run(self, mock_source_class, mock_target_class):
        mock_source_class.return_value.get_playlist_tracks.return_value = [
            SourceTrack(id='s1', title='Song', artists=['Artist'], duration_ms=200000)
        ]
        mock_source_class.return_value.get_playlist.return_value = SourcePlaylist(id='pl1', name='Chill')
        target = mock_target_class.return_value
        target.search_tracks.return_value = [CandidateTrack(id='1', title='Song', username='Artist')]

        response = self.client.post('/api/convert', json={
            'playlistId': 'pl1', 'spotifyToken': 'sp', 'soundcloudToken': 'sc', 'dryRun': True,
        })

        assert response.status_code == 200
        assert json.loads(response.data)['createdPlaylist'] is None
        target.create_playlist.assert_not_called()

    @patch('spotcloud.interfaces.http.SoundCloudTargetCatalog')
    @patch('spotcloud.interfaces.http.SpotifySourceCatalog')
    def test_convert_error_not_recoverable(self, mock_source_class, mock_target_class):
        mock_source_class.return_value.get_playlist_tracks.side_effect = AuthenticationFailed('Spotify')

        response = self.client.post('/api/convert', json={
            'playlistId': 'pl1', 'spotifyToken': 'sp', 'soundcloudToken': 'sc',
        })

        assert response.status_code == 422
        data = json.loads(response.data)
        assert data['error'].startswith('Conversion failed: Authentication failed for Spotify')
        assert data['recoverable'] is False

    @patch('spotcloud.interfaces.http.SoundCloudTargetCatalog')
    @patch('spotcloud.interfaces.http.SpotifySourceCatalog')
    def test_convert_error_recoverable(self, mock_source_class, mock_target_class):
        mock_source_class.return_value.get_playlist_tracks.side_effect = TemporaryFailure('timeout')

        response = self.client.post('/api/convert', json={
            'playlistId': 'pl1', 'spotifyToken': 'sp', 'soundcloudToken': 'sc',
        })

        assert response.status_code == 422
        assert json.loads(response.data)['recoverable'] is True

    @patch('spotcloud.interfaces.http.SoundCloudTargetCatalog')
    @patch('spotcloud.interfaces.http.SpotifySourceCatalog', side_effect=RuntimeError('broken client'))
    def test_convert_unexpected_error(self, mock_source_class, mock_target_class):
        response = self.client.post('/api/convert', json={
            'playlistId': 'pl1', 'spotifyToken': 'sp', 'soundcloudToken': 'sc',
        })

        assert response.status_code == 500
        assert json.loads(response.data)['details'] == 'broken client'
