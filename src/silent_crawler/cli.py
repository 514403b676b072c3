"""
Command-line entry point for the crawler.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

from . import __description__, __version__
from .crawler.scheduler import CrawlerScheduler
from .storage.output import OutputError, print_results, print_summary, write_results_json
from .storage.results import ResultSets
from .utils.config import Config, ConfigError, load_config
from .utils.logger import log_system_info, setup_logging
from .utils.monitoring import CrawlerMonitor


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self, config: Config):
        self.config = config
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event = asyncio.Event()
        self.interrupted = False

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops
                signal.signal(signum, lambda s, frame: loop.call_soon_threadsafe(signal_handler, s))

    async def crawl(self) -> ResultSets:
        """
        Run the crawl until it finishes or a shutdown signal arrives.

        Returns:
            Results collected so far (complete unless interrupted)
        """
        crawler_config = self.config.crawler

        self.logger.info(f"Starting silent crawler on {crawler_config.seed_url}")
        self.logger.info(
            f"Max depth: {crawler_config.max_depth}, Delay: {crawler_config.delay}s, "
            f"Timeout: {crawler_config.request_timeout}s, "
            f"Concurrent requests: {crawler_config.concurrency}"
        )
        self.logger.info(f"Respecting robots.txt: {crawler_config.respect_robots_txt}")

        monitor = CrawlerMonitor()
        if self.config.monitoring.metrics_enabled:
            monitor.start_server(self.config.monitoring.prometheus_port)

        self.scheduler = CrawlerScheduler(
            crawler_config,
            monitor=monitor,
            stats_interval=self.config.monitoring.stats_interval,
        )

        try:
            await self.scheduler.initialize()

            crawl_task = asyncio.create_task(self.scheduler.start_crawling())
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            done, pending = await asyncio.wait(
                [crawl_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if shutdown_task in done:
                self.interrupted = True
                self.logger.info("Shutdown requested, keeping partial results")
                await self.scheduler.stop_crawling()
                return self.scheduler.results.snapshot()

            return crawl_task.result()

        finally:
            await self.scheduler.close()

    async def run(self, output: Optional[str] = None) -> int:
        """Set up logging, crawl, and emit results. Returns the exit status."""
        setup_logging(self.config.logging)
        log_system_info()
        self.setup_signal_handlers()

        try:
            results = await self.crawl()
        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return EXIT_FAILURE

        status = self.emit_results(results, output)

        if status == EXIT_OK and self.interrupted:
            return EXIT_INTERRUPTED
        return status

    def emit_results(self, results: ResultSets, output: Optional[str] = None) -> int:
        """Print or write the results; a write failure still prints them."""
        include_external = self.config.crawler.record_external
        print_summary(results)

        if not output:
            print_results(results, include_external=include_external)
            return EXIT_OK

        try:
            write_results_json(results, output, include_external=include_external)
        except OutputError as e:
            self.logger.error(str(e))
            print(f"Error: {e}", file=sys.stderr)
            print_results(results, include_external=include_external)
            return EXIT_FAILURE

        print(f"\nDetailed results saved to {output}")
        return EXIT_OK


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='silent-crawler',
        description=__description__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  silent-crawler example.com                     # Crawl with defaults
  silent-crawler https://example.com -d 2 -c 5   # Depth 2, 5 workers
  silent-crawler example.com -o results.json     # Save results as JSON
  silent-crawler example.com --config crawl.yaml # Defaults from a YAML file
        """
    )

    parser.add_argument('url', nargs='?', help='Base URL to crawl')
    parser.add_argument('-d', '--depth', type=int, help='Maximum crawl depth (default: 3)')
    parser.add_argument('-w', '--wait', type=float,
                        help='Delay between requests in seconds (default: 0.5)')
    parser.add_argument('-t', '--timeout', type=float,
                        help='Request timeout in seconds (default: 10)')
    parser.add_argument('-u', '--user-agent', help='Custom User-Agent string')
    parser.add_argument('-o', '--output', help='Write results as JSON to this path')
    parser.add_argument('--ignore-robots', action='store_true',
                        help='Ignore robots.txt restrictions')
    parser.add_argument('-c', '--concurrency', type=int,
                        help='Maximum number of concurrent workers (default: 10)')
    parser.add_argument('--record-non-html', action='store_true',
                        help='Also record reachable non-HTML resources in the URL list')
    parser.add_argument('--record-external', action='store_true',
                        help='Record links to external hosts in an "external" list')
    parser.add_argument('--config', help='YAML configuration file with default settings')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('--log-json', action='store_true', help='Emit logs as JSON')
    parser.add_argument('--metrics-port', type=int,
                        help='Expose Prometheus metrics on this port')
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')
    return parser


def build_overrides(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    """Map parsed arguments onto configuration sections; unset flags stay None."""
    return {
        'crawler': {
            'seed_url': args.url,
            'max_depth': args.depth,
            'delay': args.wait,
            'request_timeout': args.timeout,
            'user_agent': args.user_agent,
            'respect_robots_txt': False if args.ignore_robots else None,
            'concurrency': args.concurrency,
            'record_non_html': True if args.record_non_html else None,
            'record_external': True if args.record_external else None,
        },
        'logging': {
            'level': args.log_level,
            'file': args.log_file,
            'json': True if args.log_json else None,
        },
        'monitoring': {
            'metrics_enabled': True if args.metrics_port is not None else None,
            'prometheus_port': args.metrics_port,
        },
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_arg_parser().parse_args(argv)

    try:
        config = load_config(args.config, build_overrides(args))
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    app = CrawlerApp(config)
    try:
        return asyncio.run(app.run(output=args.output))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == '__main__':
    sys.exit(main())
