"""
Command-line entry for the ROM launcher
"""

import argparse
import sys

from .config import load_config
from .monitor import monitor_action, setup_runtime_monitor


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog='romlauncher',
        description='GBA Playground - serve local GBA ROMs to a browser emulator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Environment:
  PORT, HOST, APP_ENV, ROMS_DIR, PUBLIC_DIR, DB_PATH, LOG_DIR,
  CORS_ORIGIN, RATE_LIMIT_WINDOW_MS, RATE_LIMIT_MAX, TRUST_PROXY

Examples:
  %(prog)s
  %(prog)s --port 8080 --roms ./my-roms
        '''
    )
    parser.add_argument('--host', type=str, help='Interface to bind (default: $HOST or 127.0.0.1)')
    parser.add_argument('--port', '-p', type=int, help='Port to listen on (default: $PORT or 3000)')
    parser.add_argument('--roms', '-r', type=str, help='ROM directory (overrides $ROMS_DIR)')
    parser.add_argument('--db', type=str, help='SQLite event log path (overrides $DB_PATH)')
    parser.add_argument('--debug', action='store_true', help='Enable the Flask debugger')
    parser.add_argument('--show-config', action='store_true',
                        help='Print the resolved configuration and exit')
    return parser


def run_cli(argv=None) -> int:
    """Parse arguments and start the server. Returns an exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    config = load_config()
    if args.roms:
        config.roms_dir = args.roms
    if args.db:
        config.db_path = args.db

    if args.show_config:
        for key, value in config.to_dict().items():
            print(f"{key:22} {value}")
        return 0

    logger = setup_runtime_monitor(log_dir=config.log_dir)
    monitor_action('mode selected: web', logger=logger)

    from .web import run_server
    try:
        run_server(args.host, args.port, debug=args.debug, config=config)
    except KeyboardInterrupt:
        print("\nServer closed.")
    return 0


if __name__ == '__main__':
    sys.exit(run_cli())
