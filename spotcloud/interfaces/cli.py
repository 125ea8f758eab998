import argparse
import logging
import os
import signal
import sys
import time
from datetime import datetime
from typing import List, Optional

from dotenv import load_dotenv

from spotcloud.application.matching import TrackMatcher
from spotcloud.application.pipeline import PlaylistConverter
from spotcloud.crosscutting.config import ConfigError, get_secret_manager
from spotcloud.crosscutting.logging import CorrelationContext, setup_logging
from spotcloud.crosscutting.metrics import MetricsCollector
from spotcloud.crosscutting.reporting import save_export
from spotcloud.domain.errors import ConversionError
from spotcloud.infrastructure.providers.soundcloud import SoundCloudTargetCatalog
from spotcloud.infrastructure.providers.spotify import SpotifySourceCatalog

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


class CLI:
    """Command Line Interface for SpotCloud."""

    def __init__(self):
        """Initialize CLI."""
        # .env is loaded by main() only, so tests stay deterministic
        self.parser = self._create_parser()
        self._setup_signal_handlers()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='spotcloud',
            description='Convert Spotify playlists into SoundCloud playlists'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        convert_parser = subparsers.add_parser('convert', help='Convert a Spotify playlist')
        convert_parser.add_argument(
            '--playlist',
            required=True,
            help='Spotify playlist ID to convert'
        )
        convert_parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Match tracks without creating the SoundCloud playlist'
        )
        convert_parser.add_argument(
            '--report-path',
            default='reports/',
            help='Directory or file for the JSON export (default: reports/)'
        )
        convert_parser.add_argument(
            '--metrics-path',
            default=None,
            help='Optional file to write conversion metrics to'
        )
        self._add_logging_arguments(convert_parser)

        list_parser = subparsers.add_parser('list', help='List your Spotify playlists')
        self._add_logging_arguments(list_parser)

        return parser

    @staticmethod
    def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            '--log-level',
            choices=LOG_LEVELS,
            default='INFO',
            help='Set logging level'
        )
        parser.add_argument(
            '--log-format',
            choices=['json', 'text'],
            default='text',
            help='Log output format (default: text)'
        )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down gracefully...")
            self._cleanup_resources()
            sys.exit(130)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _cleanup_resources(self) -> None:
        """Log execution time on exit."""
        logger = logging.getLogger(__name__)
        if self._start_time:
            duration = time.time() - self._start_time
            logger.info(f"CLI execution time: {duration:.2f}s")

    def _setup_logging(self, level: str, log_format: str = 'text') -> None:
        setup_logging(level=level, json_format=(log_format == 'json'))

    def _create_job_id(self) -> str:
        """Create unique job identifier."""
        return f"spotcloud_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    def _get_env_token(self, service: str) -> Optional[str]:
        """Get an access token from the environment, falling back to stored tokens."""
        value = os.getenv(f"{service.upper()}_ACCESS_TOKEN")
        if value is not None and str(value).strip():
            return value

        secrets = get_secret_manager()
        if service == 'spotify':
            return secrets.get_spotify_token()
        if service == 'soundcloud':
            return secrets.get_soundcloud_token()
        return None

    def _create_source_catalog(self) -> SpotifySourceCatalog:
        """Create the Spotify catalog."""
        token = self._get_env_token('spotify')
        if not token:
            raise ValueError("SPOTIFY_ACCESS_TOKEN environment variable is required")
        return SpotifySourceCatalog(token)

    def _create_target_catalog(self, search_limit: int, timeout: float) -> SoundCloudTargetCatalog:
        """Create the SoundCloud catalog."""
        token = self._get_env_token('soundcloud')
        if not token:
            raise ValueError("SOUNDCLOUD_ACCESS_TOKEN environment variable is required")
        return SoundCloudTargetCatalog(token, search_limit=search_limit, timeout=timeout)

    def _convert_playlist(self, args: argparse.Namespace) -> None:
        """Convert one playlist and write the export."""
        logger = logging.getLogger(__name__)
        job_id = self._create_job_id()

        with CorrelationContext(job_id=job_id, playlist_id=args.playlist):
            try:
                secrets = get_secret_manager()
                settings = secrets.get_matching_config()
                logger.debug(f"Configuration: {secrets.get_config_summary()}")
                source_catalog = self._create_source_catalog()
                target_catalog = self._create_target_catalog(settings['search_limit'], settings['http_timeout'])
            except (ValueError, ConfigError) as e:
                logger.error(f"Configuration error: {e}")
                sys.exit(1)

            metrics = MetricsCollector(args.playlist)
            converter = PlaylistConverter(
                source_catalog=source_catalog,
                target_catalog=target_catalog,
                matcher=TrackMatcher(settings['match_threshold'], metrics=metrics),
                metrics=metrics,
            )

            def on_progress(percent: float, label: Optional[str]) -> None:
                logger.info(f"[{percent:5.1f}%] {label or ''}")

            mode = "DRY-RUN conversion" if args.dry_run else "conversion"
            logger.info(f"Starting {mode} of playlist {args.playlist} (job: {job_id})")

            try:
                result = converter.convert_playlist(args.playlist, on_progress=on_progress, dry_run=args.dry_run)
            except ConversionError as e:
                logger.error(str(e))
                sys.exit(1)

            logger.info(f"Matched {result.success_count}/{len(result.matches)} tracks "
                        f"({result.success_rate:.1f}%)")
            if result.created_playlist:
                logger.info(f"SoundCloud playlist: {result.created_playlist.url}")
            elif not args.dry_run and result.success_count > 0:
                logger.warning("SoundCloud playlist could not be created; see the export for matched tracks")

            self._write_reports(result, metrics, args)

    def _write_reports(self, result, metrics: MetricsCollector, args: argparse.Namespace) -> None:
        """Write the export and metrics files; failures here never fail the run."""
        logger = logging.getLogger(__name__)
        try:
            report_path = args.report_path
            if report_path.endswith(os.sep) or report_path.endswith('/'):
                os.makedirs(report_path, exist_ok=True)
            written = save_export(result, report_path)
            logger.info(f"Report saved to: {written}")
        except OSError as e:
            logger.error(f"Failed to save report: {e}")

        if args.metrics_path:
            try:
                metrics.save_to_file(args.metrics_path)
            except OSError as e:
                logger.error(f"Failed to save metrics: {e}")

    def _list_playlists(self, args: argparse.Namespace) -> None:
        """List the user's Spotify playlists."""
        logger = logging.getLogger(__name__)

        try:
            playlists = self._create_source_catalog().list_playlists()
        except Exception as e:
            logger.error(f"Failed to list playlists: {e}")
            sys.exit(1)

        print("Available Spotify playlists:")
        print("-" * 50)
        for playlist in playlists:
            visibility = "[PUBLIC]" if playlist.is_public else "[PRIVATE]"
            print(f"{playlist.id}: {playlist.name} {visibility} (tracks: {playlist.track_count})")

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Run the CLI."""
        self._start_time = time.time()

        try:
            args = self.parser.parse_args(argv)

            if not args.command:
                self.parser.print_help()
                sys.exit(1)

            self._setup_logging(args.log_level, args.log_format)

            if args.command == 'convert':
                self._convert_playlist(args)
            elif args.command == 'list':
                self._list_playlists(args)

        except KeyboardInterrupt:
            logger = logging.getLogger(__name__)
            logger.warning("Operation cancelled by user")
            sys.exit(130)
        finally:
            self._cleanup_resources()


def main():
    """Main entry point."""
    load_dotenv()
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
