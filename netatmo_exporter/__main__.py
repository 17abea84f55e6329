#
# Copyright 2025 The NetatmoExporter contributors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""Command-line interface for the Netatmo exporter."""

import argparse
import asyncio
import logging
import logging.handlers
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Tuple

import uvicorn

from .api import DEFAULT_SCRAPE_TIMEOUT, NetatmoExporter
from .cloud import NetatmoCloudAPI
from .database import ensure_schema_and_migrate
from .routes import create_app, register_routes
from .state import DEFAULT_INITIAL_WINDOW

# Logger will be configured in main() based on daemon/console mode
logger = logging.getLogger(__name__)

server: Optional[uvicorn.Server] = None


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` / ``:port`` / ``port`` into a bind host and port."""
    address = address.strip()
    if address.startswith(":"):
        return "0.0.0.0", int(address[1:])
    if ":" in address:
        host, port = address.rsplit(":", 1)
        return host.strip("[]") or "0.0.0.0", int(port)
    return "0.0.0.0", int(address)


def build_log_config(args) -> dict:
    """uvicorn log_config matching the root logger format for the selected mode."""
    if args.syslog:
        # Syslog mode: uvicorn propagates to the root logger
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "loggers": {
                "uvicorn": {"handlers": [], "level": "INFO", "propagate": True},
                "uvicorn.error": {"handlers": [], "level": "INFO", "propagate": True},
                "uvicorn.access": {"handlers": [], "level": "WARNING", "propagate": True},
            },
        }

    if args.daemon:
        formatter = {"format": "%(levelname)-8s %(message)s"}
    else:
        formatter = {"format": "%(asctime)s %(levelname)s %(message)s", "datefmt": "%Y-%m-%d %H:%M:%S"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            # Access lines only in verbose mode
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "INFO" if args.verbose else "WARNING",
                "propagate": False,
            },
        },
    }


async def run_server(args):
    """Run the exporter HTTP server."""
    global server

    def handle_signal(signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info(f"Received signal {signum}, shutting down...")
        if server:
            server.should_exit = True

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    db_path = Path(os.path.expanduser(args.state))
    ensure_schema_and_migrate(str(db_path))

    cloud_api = NetatmoCloudAPI(
        str(db_path),
        client_id=args.client_id,
        client_secret=args.client_secret,
        refresh_token=args.refresh_token,
        username=args.username,
        password=args.password,
    )
    if not cloud_api.can_authenticate():
        raise RuntimeError(
            "No Netatmo credentials: provide --refresh-token or --username/--password"
        )

    exporter = NetatmoExporter(
        cloud_api,
        scrape_timeout=args.timeout,
        initial_window=args.window,
    )

    app = create_app()
    register_routes(app, lambda: exporter)

    host, port = parse_listen_address(args.listen)

    logger.info("*** Netatmo exporter ready! ***")
    logger.info(f"Metrics: http://{host}:{port}/metrics")
    logger.info(f"Status: http://{host}:{port}/status")

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=build_log_config(args),
        access_log=True,
    )
    server = uvicorn.Server(config)
    await server.serve()


def configure_logging(args):
    """Configure the root logger for console, daemon or syslog mode."""
    if args.syslog:
        syslog_address = args.syslog
        if ':' in syslog_address and not syslog_address.startswith('/'):
            host, port = syslog_address.rsplit(':', 1)
            syslog_address = (host, int(port))

        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_DAEMON
            )
            syslog_handler.setFormatter(logging.Formatter(
                'netatmo-exporter[%(process)d]: %(levelname)s %(message)s'
            ))

            root_logger = logging.getLogger()
            root_logger.setLevel(logging.INFO)
            root_logger.handlers = [syslog_handler]

            logger.info("Logging to syslog: %s", args.syslog)
        except OSError as e:
            logging.basicConfig(
                level=logging.INFO,
                format='%(asctime)s %(levelname)s %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S',
                stream=sys.stdout,
                force=True
            )
            logger.error(f"Failed to connect to syslog ({args.syslog}): {e}")
            logger.info("Falling back to console logging")
    elif args.daemon:
        # No timestamp - syslog/journald adds it
        logging.basicConfig(
            level=logging.INFO,
            format='%(levelname)s %(message)s',
            stream=sys.stdout,
            force=True
        )
    else:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s %(levelname)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            stream=sys.stdout,
            force=True
        )

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.info("Verbose logging enabled")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Netatmo Exporter - Prometheus metrics for Netatmo Energy homes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # First start with a refresh token from the Netatmo developer portal
  netatmo-exporter --client-id ID --client-secret SECRET --refresh-token TOKEN

  # Credentials from the environment, custom listen address
  NETATMO_CLIENT_ID=ID NETATMO_CLIENT_SECRET=SECRET netatmo-exporter --listen 127.0.0.1:9210

  # Run as system daemon
  netatmo-exporter --daemon --pid-file /var/run/netatmo-exporter.pid

Endpoints:
  GET  /          - Service information
  GET  /metrics   - Prometheus metrics (runs a scrape pass)
  GET  /status    - Exporter status and cache summary
        """
    )
    env = os.environ.get
    parser.add_argument("--client-id", default=env("NETATMO_CLIENT_ID"),
                        help="Netatmo API client ID (env: NETATMO_CLIENT_ID)")
    parser.add_argument("--client-secret", default=env("NETATMO_CLIENT_SECRET"),
                        help="Netatmo API client secret (env: NETATMO_CLIENT_SECRET)")
    parser.add_argument("--refresh-token", default=env("NETATMO_REFRESH_TOKEN"),
                        help="Initial OAuth refresh token (env: NETATMO_REFRESH_TOKEN)")
    parser.add_argument("--username", default=env("NETATMO_USERNAME"),
                        help="Netatmo username for the password grant (env: NETATMO_USERNAME)")
    parser.add_argument("--password", default=env("NETATMO_PASSWORD"),
                        help="Netatmo password for the password grant (env: NETATMO_PASSWORD)")
    parser.add_argument("--listen", default=env("NETATMO_EXPORTER_LISTEN", ":2112"),
                        help="Address to listen on (default: :2112)")
    parser.add_argument("--state", default="~/.netatmo-exporter.db",
                        help="Path to state database (default: ~/.netatmo-exporter.db)")
    parser.add_argument("--window", type=int, default=DEFAULT_INITIAL_WINDOW,
                        help=f"Seconds the first measurement fetch looks back (default: {DEFAULT_INITIAL_WINDOW})")
    parser.add_argument("--timeout", type=float, default=DEFAULT_SCRAPE_TIMEOUT,
                        help=f"Timeout in seconds for one scrape pass (default: {DEFAULT_SCRAPE_TIMEOUT:.0f})")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable verbose logging (DEBUG level)")
    parser.add_argument("--daemon", action="store_true",
                        help="Run in daemon mode (syslog friendly logging, auto-enables --pid-file)")
    parser.add_argument("--syslog",
                        help="Send logs to syslog instead of stdout (e.g., /dev/log or remote.server:514)")
    parser.add_argument("--pid-file",
                        help="Write process ID to specified file (useful for daemon mode)")
    return parser


def main():
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.client_id:
        parser.error("Netatmo API client ID has to be provided (--client-id or NETATMO_CLIENT_ID)")
    if not args.client_secret:
        parser.error("Netatmo API client secret has to be provided (--client-secret or NETATMO_CLIENT_SECRET)")

    # Daemon mode implies PID file if not specified
    if args.daemon and not args.pid_file:
        args.pid_file = "/var/run/netatmo-exporter.pid" if sys.platform != "win32" else "netatmo-exporter.pid"

    configure_logging(args)

    pid_path = Path(args.pid_file) if args.pid_file else None
    if pid_path:
        try:
            pid_path.write_text(str(os.getpid()))
            logger.info(f"PID file written: {pid_path}")
        except OSError as e:
            logger.error(f"Failed to write PID file: {e}")
            sys.exit(1)

    try:
        asyncio.run(run_server(args))
    except KeyboardInterrupt:
        logger.info("*** Shutdown complete ***")
    except Exception as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)
    finally:
        if pid_path and pid_path.exists():
            try:
                pid_path.unlink()
                logger.info(f"PID file removed: {pid_path}")
            except OSError as e:
                logger.warning(f"Failed to remove PID file: {e}")


if __name__ == "__main__":
    main()
