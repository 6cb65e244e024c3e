import argparse
import json
import sys
import logging
import signal
import time
from typing import Any, Optional

from dotenv import load_dotenv

from auraluxe.application.search import SearchAggregator
from auraluxe.crosscutting.config import AppConfig, ConfigError, get_config_manager
from auraluxe.crosscutting.logging import setup_logging
from auraluxe.crosscutting.metrics import MetricsCollector
from auraluxe.domain.errors import InvalidArgument
from auraluxe.infrastructure.providers.factory import build_providers


LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


class CLI:
    """Command Line Interface for Auraluxe."""

    def __init__(self):
        """Initialize CLI."""
        # .env is loaded in run() so tests stay deterministic
        self.parser = self._create_parser()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='auraluxe',
            description='Search music catalogs and serve the Auraluxe API'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        search_parser = subparsers.add_parser('search', help='Search all active catalogs')
        search_parser.add_argument('query', help='Search text (at least 2 characters)')
        search_parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of tracks (default from AURALUXE_SEARCH_LIMIT or 20)'
        )

        trending_parser = subparsers.add_parser('trending', help='Show trending tracks')
        trending_parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of tracks (default from AURALUXE_SEARCH_LIMIT or 20)'
        )

        track_parser = subparsers.add_parser('track', help='Look up one track by id')
        track_parser.add_argument('track_id', help='Provider-prefixed id, e.g. deezer-3135556')

        serve_parser = subparsers.add_parser('serve', help='Run the HTTP API')
        serve_parser.add_argument('--host', default=None, help='Bind address (default from AURALUXE_HOST)')
        serve_parser.add_argument('--port', type=int, default=None,
                                  help='Port (default from AURALUXE_PORT or 5000)')
        serve_parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')

        subparsers.add_parser('config', help='Show resolved configuration')

        for sub in (search_parser, trending_parser, track_parser, serve_parser):
            sub.add_argument(
                '--log-level',
                choices=LOG_LEVELS,
                default=None,
                help='Set logging level (default from AURALUXE_LOG_LEVEL or INFO)'
            )

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down...")
            self._cleanup_resources()
            sys.exit(130)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _cleanup_resources(self) -> None:
        """Log execution time on exit."""
        if self._start_time:
            duration = time.time() - self._start_time
            logging.getLogger(__name__).debug(f"CLI execution time: {duration:.2f}s")

    def _resolve_limit(self, requested: Optional[int], config: AppConfig) -> int:
        if requested is None:
            return config.search_limit
        if requested < 1:
            raise InvalidArgument("limit must be a positive integer")
        return min(requested, config.max_limit)

    def _create_aggregator(self, config: AppConfig) -> SearchAggregator:
        """Create the search aggregator over every active provider."""
        return SearchAggregator(
            build_providers(config),
            timeout_sec=config.provider_timeout_sec,
            metrics=MetricsCollector(),
        )

    def _print_json(self, payload: Any) -> None:
        print(json.dumps(payload, indent=2, ensure_ascii=False))

    def _search(self, args: argparse.Namespace, config: AppConfig) -> None:
        aggregator = self._create_aggregator(config)
        result = aggregator.search(args.query, self._resolve_limit(args.limit, config))
        self._print_json(result.to_json())

    def _trending(self, args: argparse.Namespace, config: AppConfig) -> None:
        aggregator = self._create_aggregator(config)
        tracks = aggregator.trending(self._resolve_limit(args.limit, config))
        self._print_json({'tracks': [t.to_json() for t in tracks], 'category': 'trending'})

    def _track(self, args: argparse.Namespace, config: AppConfig) -> None:
        track = self._create_aggregator(config).get_track(args.track_id)
        if track is None:
            print(f"Track not found: {args.track_id}", file=sys.stderr)
            sys.exit(1)
        self._print_json({'track': track.to_json()})

    def _serve(self, args: argparse.Namespace, config: AppConfig) -> None:
        from auraluxe.interfaces.http import HTTPServer

        server = HTTPServer(
            host=args.host or config.host,
            port=args.port or config.port,
            debug=args.debug,
            config=config,
        )
        server.run()

    def _show_config(self) -> None:
        self._print_json(get_config_manager().get_config_summary())

    def run(self, argv: Optional[list] = None) -> None:
        """Run the CLI."""
        self._start_time = time.time()
        logger = logging.getLogger(__name__)

        try:
            args = self.parser.parse_args(argv)

            if not args.command:
                self.parser.print_help()
                sys.exit(1)

            load_dotenv()
            config = get_config_manager().load()
            setup_logging(getattr(args, 'log_level', None) or config.log_level)

            if args.command == 'search':
                self._search(args, config)
            elif args.command == 'trending':
                self._trending(args, config)
            elif args.command == 'track':
                self._track(args, config)
            elif args.command == 'serve':
                self._setup_signal_handlers()
                self._serve(args, config)
            elif args.command == 'config':
                self._show_config()
            else:
                self.parser.print_help()
                sys.exit(1)

        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            sys.exit(2)
        except InvalidArgument as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(2)
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            sys.exit(130)
        finally:
            self._cleanup_resources()


def main():
    """Main entry point."""
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
