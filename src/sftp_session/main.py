"""Command-line entry point for sftp-session."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config.settings import ConfigManager, ConfigurationError
from .sftp.errors import SFTPError
from .sftp.session import SftpSession
from .utils.error_handler import ErrorCategory, ErrorSeverity, get_error_handler, handle_error
from .utils.logging_config import setup_logging


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SFTP_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sftp-session",
        description="Run a single SFTP file operation. Connection settings come from "
                    "the environment or a .env file; options override them."
    )
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--host", help="SFTP host (SFTP_HOST)")
    parser.add_argument("--port", type=int, help="SFTP port (SFTP_PORT)")
    parser.add_argument("--username", help="Login user (SFTP_USERNAME)")
    parser.add_argument("--password", help="Login password (SFTP_PASSWORD)")
    parser.add_argument("--public-key", help="Public key file (SFTP_PUBLIC_KEY)")
    parser.add_argument("--private-key", help="Private key file (SFTP_PRIVATE_KEY)")
    parser.add_argument("--passphrase", help="Private key passphrase (SFTP_PASSPHRASE)")
    parser.add_argument("--log-level", help="Console log level (LOG_LEVEL)")

    commands = parser.add_subparsers(dest="command", required=True)

    mkdir = commands.add_parser("mkdir", help="Create a remote directory")
    mkdir.add_argument("path")
    mkdir.add_argument("--mode", type=lambda value: int(value, 8), default=0o777,
                       help="Octal permissions (default 777)")
    mkdir.add_argument("-p", "--parents", action="store_true", help="Create missing parents")

    upload = commands.add_parser("upload", help="Upload a local file")
    upload.add_argument("local")
    upload.add_argument("remote")

    download = commands.add_parser("download", help="Download a remote file and print the local path")
    download.add_argument("remote")
    download.add_argument("local", nargs="?")

    read = commands.add_parser("read", help="Write a remote file's content to stdout")
    read.add_argument("remote")

    write = commands.add_parser("write", help="Write stdin (or --file) to a remote file")
    write.add_argument("remote")
    write.add_argument("--file", help="Read content from this local file instead of stdin")

    delete = commands.add_parser("delete", help="Delete a remote file")
    delete.add_argument("remote")

    filesize = commands.add_parser("filesize", help="Print a remote file's size in bytes")
    filesize.add_argument("remote")

    listing = commands.add_parser("list", help="List a remote directory")
    listing.add_argument("path", nargs="?", default="/")
    listing.add_argument("-r", "--recursive", action="store_true")
    listing.add_argument("--json", action="store_true", help="Print entries as JSON lines")

    return parser


def load_config(args: argparse.Namespace) -> ConfigManager:
    overrides = {
        'SFTP_HOST': args.host,
        'SFTP_PORT': args.port,
        'SFTP_USERNAME': args.username,
        'SFTP_PASSWORD': args.password,
        'SFTP_PUBLIC_KEY': args.public_key,
        'SFTP_PRIVATE_KEY': args.private_key,
        'SFTP_PASSPHRASE': args.passphrase,
        'LOG_LEVEL': args.log_level,
    }
    return ConfigManager(env_file=args.env_file, overrides=overrides)


def run_command(session: SftpSession, args: argparse.Namespace) -> None:
    """Execute the selected command on a connected session."""
    out = sys.stdout

    if args.command == "mkdir":
        session.mkdir(args.path, permissions=args.mode, recursive=args.parents)
    elif args.command == "upload":
        session.upload(args.local, args.remote)
    elif args.command == "download":
        print(session.download(args.remote, args.local), file=out)
    elif args.command == "read":
        out.buffer.write(session.read(args.remote))
        out.flush()
    elif args.command == "write":
        if args.file:
            with open(args.file, 'rb') as f:
                data = f.read()
        else:
            data = sys.stdin.buffer.read()
        session.write(args.remote, data)
    elif args.command == "delete":
        session.delete(args.remote)
    elif args.command == "filesize":
        print(session.filesize(args.remote), file=out)
    elif args.command == "list":
        for entry in session.list(args.path, recursive=args.recursive):
            if args.json:
                print(json.dumps(entry.to_dict()), file=out)
            else:
                marker = "d" if entry.is_directory else "-"
                print(f"{marker} {entry.filepath}", file=out)


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    try:
        config_manager = load_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logging_config = config_manager.get_logging_config()
    logging_manager = setup_logging(logging_config)
    error_handler = get_error_handler(logging_config.error_log_dir, logging_config.retention_days)

    try:
        connection_config = config_manager.get_connection_config()
    except ValueError as e:
        logger.critical(f"Configuration error: {e}")
        handle_error(
            error=e,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            component="main",
            operation="startup"
        )
        return EXIT_CONFIG_ERROR

    try:
        with SftpSession(connection_config) as session:
            run_command(session, args)
        return EXIT_OK
    except SFTPError as e:
        # Already reported by the session
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_SFTP_ERROR
    except OSError as e:
        logger.error(f"Local I/O error: {e}")
        handle_error(
            error=e,
            category=ErrorCategory.LOCAL_FILE_OPERATION,
            severity=ErrorSeverity.HIGH,
            component="main",
            operation=args.command
        )
        return EXIT_SFTP_ERROR
    finally:
        error_handler.cleanup_old_error_logs()
        logging_manager.cleanup_old_logs()


if __name__ == "__main__":
    sys.exit(main())
