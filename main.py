# =============================================================================
# main.py - CLI entry point
# =============================================================================

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from core.ad_client import ActiveDirectoryClient, DirectoryQueryError, DirectoryUnavailableError
from core.dataset_view import FilterableDatasetView
from core.report import format_summary
from core.scanner import InventoryScanner
from utils.config import Config
from utils.csv_utils import ExportError, default_export_filename, export_inventory_csv

EXIT_FAILURE = 1
EXIT_EXPORT_FAILED = 2


def setup_logging(level: str = "INFO", log_dir: str = "logs") -> str:
    """Setup logging configuration with both console and file output"""
    log_path = Path(log_dir)
    log_path.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_path / f"bitlocker_inventory_{timestamp}.log"

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    # Console goes to stderr so stdout carries only the summary line
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Console: {level.upper()}, File: DEBUG")
    logger.info(f"Log file: {log_filename}")

    return str(log_filename)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inventory BitLocker recovery key escrow for computers in Active Directory"
    )
    parser.add_argument('--scope', help='Distinguished name of the subtree to scan (default: entire directory)')
    parser.add_argument('--include-servers', action='store_true',
                        help='Include computers running a server operating system')
    parser.add_argument('--max-last-logon-age-days', type=int, default=0,
                        help='Only include computers seen within this many days (0 disables)')
    parser.add_argument('--filter', default='',
                        help='Case-insensitive text filter on name, OS or DN applied before export')
    parser.add_argument('--export', nargs='?', const='', metavar='PATH',
                        help='Export visible rows to CSV (default name includes a timestamp)')
    parser.add_argument('--serve', action='store_true', help='Start the web UI for the finished report')
    parser.add_argument('--port', type=int, default=5000, help='Web UI port')
    parser.add_argument('--workers', type=int, help='Parallel recovery key lookups (default: ENRICH_WORKERS)')
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    return parser


def create_ad_client(config: Config) -> ActiveDirectoryClient:
    return ActiveDirectoryClient(
        config.ad_server, config.ad_username, config.ad_password, config.base_dn,
        use_ssl=config.use_ssl, timeout=config.query_timeout, page_size=config.page_size
    )


def export_view(view: FilterableDatasetView, path: str) -> int:
    """Export the rows currently visible in view"""
    logger = logging.getLogger(__name__)
    rows = view.visible_rows()
    if view.query:
        logger.info(f"Filter '{view.query}' matches {len(rows)} of {len(view.report)} rows")
    return export_inventory_csv(rows, path)


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.max_last_logon_age_days < 0:
        parser.error("--max-last-logon-age-days must be zero or positive")
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    config = Config()
    if not config.validate_ad_config():
        missing_vars = config.get_missing_ad_vars()
        logger.error(f"Missing required environment variables: {missing_vars}")
        logger.error("Set them in the environment or a .env file next to the tool")
        return EXIT_FAILURE

    try:
        workers = args.workers or config.enrich_workers
        with create_ad_client(config) as ad_client:
            scanner = InventoryScanner(
                ad_client,
                include_servers=args.include_servers,
                max_last_logon_age_days=args.max_last_logon_age_days,
                max_workers=workers
            )
            report = scanner.run(args.scope)
    except DirectoryUnavailableError as e:
        logger.error(f"Active Directory is unavailable: {e}")
        return EXIT_FAILURE
    except (DirectoryQueryError, ValueError) as e:
        logger.error(f"Inventory scan failed: {e}")
        return EXIT_FAILURE

    print(format_summary(report.summary))

    view = FilterableDatasetView(report)
    view.set_filter(args.filter)

    if args.export is not None:
        path = args.export or default_export_filename()
        try:
            export_view(view, path)
        except ExportError as e:
            logger.error(f"Export failed: {e}")
            return EXIT_EXPORT_FAILED

    if args.serve:
        from webapp import create_app
        app = create_app(report)
        app.run(port=args.port)

    return 0


if __name__ == "__main__":
    sys.exit(main())
