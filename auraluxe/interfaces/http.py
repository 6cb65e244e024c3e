import os
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from auraluxe.application.search import SearchAggregator
from auraluxe.crosscutting.config import AppConfig, ConfigError, get_config_manager
from auraluxe.crosscutting.logging import CorrelationContext, log_error
from auraluxe.crosscutting.metrics import MetricsCollector
from auraluxe.domain.entities import Track
from auraluxe.domain.errors import InvalidArgument, NotFound
from auraluxe.domain.ports import LibraryStore
from auraluxe.infrastructure.providers.factory import build_providers
from auraluxe.infrastructure.storage.json_store import JsonLibraryStore


USER_HEADER = 'X-User-Id'


class Unauthorized(Exception):
    """Request carried no caller identity."""


class HTTPServer:
    """HTTP server exposing music search, user library and playlist routes."""

    def __init__(self, host: str = 'localhost', port: int = 5000, debug: bool = False,
                 config: Optional[AppConfig] = None,
                 aggregator: Optional[SearchAggregator] = None,
                 store: Optional[LibraryStore] = None,
                 metrics: Optional[MetricsCollector] = None):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self.config = config or get_config_manager().load()
        self.metrics = metrics or MetricsCollector()
        self.aggregator = aggregator or SearchAggregator(
            build_providers(self.config),
            timeout_sec=self.config.provider_timeout_sec,
            metrics=self.metrics,
        )
        self.store = store or JsonLibraryStore(str(self.config.data_dir))

        self._setup_routes()

    # -- request helpers -----------------------------------------------

    def _error(self, message: str, status: int) -> Tuple[Any, int]:
        return jsonify({'error': message}), status

    def _handle(self, action: str, func):
        """Run a route body and map domain errors to HTTP responses."""
        try:
            return func()
        except Unauthorized as e:
            return self._error(str(e), 401)
        except InvalidArgument as e:
            return self._error(str(e), 400)
        except NotFound as e:
            return self._error(str(e), 404)
        except Exception as e:
            log_error(self.logger, f"{action} failed", e)
            return self._error(f"Failed to {action}", 500)

    def _parse_limit(self) -> int:
        raw = request.args.get('limit')
        if raw is None or raw == '':
            return self.config.search_limit
        try:
            limit = int(raw)
        except ValueError:
            raise InvalidArgument("limit must be a positive integer")
        if limit < 1:
            raise InvalidArgument("limit must be a positive integer")
        return min(limit, self.config.max_limit)

    def _user_id(self) -> str:
        user_id = (request.headers.get(USER_HEADER) or '').strip()
        if not user_id:
            raise Unauthorized("Authentication required")
        return user_id

    def _json_body(self) -> Dict[str, Any]:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise InvalidArgument("Request body must be a JSON object")
        return body

    # -- routes --------------------------------------------------------

    def _setup_routes(self) -> None:
        """Setup Flask routes."""
        app = self.app

        @app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'providers': self.aggregator.provider_names,
                'timestamp': datetime.now().isoformat()
            }), 200

        @app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'Auraluxe API',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'metrics': '/metrics',
                    'search': '/api/music/search',
                    'trending': '/api/music/trending',
                    'track': '/api/music/track/<id>',
                    'users': '/api/users',
                    'playlists': '/api/playlists',
                }
            }), 200

        @app.route('/metrics', methods=['GET'])
        def metrics():
            return jsonify(self.metrics.snapshot()), 200

        self._setup_music_routes()
        self._setup_user_routes()
        self._setup_playlist_routes()

    def _setup_music_routes(self) -> None:
        app = self.app

        @app.route('/api/music/search', methods=['GET'])
        def search():
            """Search every active catalog."""
            def body():
                query = request.args.get('q', '')
                limit = self._parse_limit()
                result = self.aggregator.search(query, limit)
                return jsonify(result.to_json()), 200
            return self._handle('search', body)

        @app.route('/api/music/trending', methods=['GET'])
        def trending():
            def body():
                tracks = self.aggregator.trending(self._parse_limit())
                return jsonify({
                    'tracks': [t.to_json() for t in tracks],
                    'category': 'trending',
                }), 200
            return self._handle('fetch trending tracks', body)

        @app.route('/api/music/track/<track_id>', methods=['GET'])
        def track(track_id: str):
            def body():
                found = self.aggregator.get_track(track_id)
                if found is None:
                    return self._error('Track not found', 404)
                return jsonify({'track': found.to_json()}), 200
            return self._handle('fetch track', body)

    def _setup_user_routes(self) -> None:
        app = self.app

        @app.route('/api/users/like-track', methods=['POST'])
        def like_track():
            def body():
                user_id = self._user_id()
                track = Track.from_json(self._json_body())
                with CorrelationContext(user_id=user_id):
                    liked, entries = self.store.toggle_like(user_id, track)
                    self.logger.info(f"Track {track.id} {'liked' if liked else 'unliked'}")
                return jsonify({
                    'message': 'Track liked' if liked else 'Track unliked',
                    'liked': liked,
                    'likedTracks': [e.to_json() for e in entries],
                }), 200
            return self._handle('like/unlike track', body)

        @app.route('/api/users/liked-tracks', methods=['GET'])
        def liked_tracks():
            def body():
                entries = self.store.liked_tracks(self._user_id())
                return jsonify({'likedTracks': [e.to_json() for e in entries]}), 200
            return self._handle('fetch liked tracks', body)

        @app.route('/api/users/recently-played', methods=['GET', 'POST'])
        def recently_played():
            def body():
                user_id = self._user_id()
                if request.method == 'POST':
                    track = Track.from_json(self._json_body())
                    entries = self.store.record_recently_played(user_id, track)
                    return jsonify({
                        'message': 'Added to recently played',
                        'recentlyPlayed': [e.to_json() for e in entries],
                    }), 200
                entries = self.store.recently_played(user_id)
                return jsonify({'recentlyPlayed': [e.to_json() for e in entries]}), 200
            return self._handle('update recently played', body)

        @app.route('/api/users/preferences', methods=['GET', 'PATCH'])
        def preferences():
            def body():
                user_id = self._user_id()
                if request.method == 'PATCH':
                    prefs = self.store.update_preferences(user_id, self._json_body())
                else:
                    prefs = self.store.get_preferences(user_id)
                return jsonify({'preferences': prefs.to_json()}), 200
            return self._handle('update preferences', body)

    def _setup_playlist_routes(self) -> None:
        app = self.app

        @app.route('/api/playlists', methods=['GET', 'POST'])
        def playlists():
            def body():
                user_id = self._user_id()
                if request.method == 'POST':
                    data = self._json_body()
                    playlist = self.store.create_playlist(
                        user_id,
                        data.get('name'),
                        description=data.get('description') or '',
                        is_public=data.get('isPublic', False),
                    )
                    return jsonify({
                        'message': 'Playlist created successfully',
                        'playlist': playlist.to_json(),
                    }), 201
                return jsonify({
                    'playlists': [p.to_json() for p in self.store.list_playlists(user_id)]
                }), 200
            return self._handle('fetch playlists', body)

        @app.route('/api/playlists/<playlist_id>', methods=['GET', 'PATCH', 'DELETE'])
        def playlist(playlist_id: str):
            def body():
                user_id = self._user_id()
                if request.method == 'PATCH':
                    updated = self.store.update_playlist(user_id, playlist_id, self._json_body())
                    return jsonify({
                        'message': 'Playlist updated successfully',
                        'playlist': updated.to_json(),
                    }), 200
                if request.method == 'DELETE':
                    self.store.delete_playlist(user_id, playlist_id)
                    return jsonify({'message': 'Playlist deleted successfully'}), 200
                found = self.store.get_playlist(user_id, playlist_id)
                return jsonify({'playlist': found.to_json()}), 200
            return self._handle('update playlist', body)

        @app.route('/api/playlists/<playlist_id>/tracks', methods=['POST'])
        def add_track(playlist_id: str):
            def body():
                user_id = self._user_id()
                track = Track.from_json(self._json_body())
                updated = self.store.add_playlist_track(user_id, playlist_id, track)
                added = updated.find_entry(track.id)
                return jsonify({
                    'message': 'Track added to playlist',
                    'playlist': updated.to_json(),
                    'addedTrack': added.to_json() if added else None,
                }), 200
            return self._handle('add track to playlist', body)

        @app.route('/api/playlists/<playlist_id>/tracks/<track_id>', methods=['DELETE'])
        def remove_track(playlist_id: str, track_id: str):
            def body():
                updated = self.store.remove_playlist_track(self._user_id(), playlist_id, track_id)
                return jsonify({
                    'message': 'Track removed from playlist',
                    'playlist': updated.to_json(),
                }), 200
            return self._handle('remove track from playlist', body)

        @app.route('/api/playlists/<playlist_id>/reorder', methods=['PATCH'])
        def reorder(playlist_id: str):
            def body():
                user_id = self._user_id()
                track_ids = self._json_body().get('trackIds')
                updated = self.store.reorder_playlist(user_id, playlist_id, track_ids)
                return jsonify({
                    'message': 'Playlist reordered successfully',
                    'playlist': updated.to_json(),
                }), 200
            return self._handle('reorder playlist', body)

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting Auraluxe HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(config: Optional[AppConfig] = None) -> Flask:
    """Create Flask app (used by WSGI servers and tests)."""
    server = HTTPServer(config=config)
    return server.app


if __name__ == '__main__':
    try:
        app_config = get_config_manager().load()
    except ConfigError as e:
        raise SystemExit(f"Configuration error: {e}")
    HTTPServer(host=app_config.host, port=app_config.port, config=app_config).run()
