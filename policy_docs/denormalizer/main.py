"""
Denormalizer Service - Main Entry Point

This is the command-line interface for the denormalizer service.

Usage:
    python -m policy_docs.denormalizer.main [OPTIONS] COMMAND [ARGS]

Options:
    --config TEXT        Path to denormalizer.yml configuration file
    --verbose            Enable debug logging
    --help               Show this message and exit

Commands:
    get-hostname site_id env hostname            Print the hostname record
    get-hostname-metadata site_id env hostname   Print the hostname metadata record
    get-edge-logic site_id env hostname          Print the edge logic record
    denormalize site_id env hostname             Denormalize one hostname
    handle-event [FILE]                          Feed a Pub/Sub envelope (file or stdin)
                                                 through the change notification handler
    init-store                                   Create the documents table

Examples:
    # Inspect the edge logic of a hostname:
    python -m policy_docs.denormalizer.main get-edge-logic site-1 live www.example.com

    # Rebuild the denormalized policy doc of a hostname:
    python -m policy_docs.denormalizer.main denormalize site-1 live www.example.com

    # Replay a captured notification:
    python -m policy_docs.denormalizer.main handle-event envelope.json

Exit Codes:
    0: Success
    1: Record error (missing or malformed record, bad input, message not acknowledged)
    2: Fatal error (configuration, store unavailable, write failure)
"""

import argparse
import json
import logging
import sys
from typing import BinaryIO, Optional, TextIO

from dotenv import load_dotenv

from .config_loader import DenormalizerConfig, load_denormalizer_config
from .denormalize import Denormalizer
from .document_store import (
    NormalizedDocumentStore,
    NotFoundError,
    PostgresDocumentStore,
    StoreError,
)
from .models import DeserializationError
from .paths import InvalidPathError
from .trigger import UpdateHandler

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LOOKUP_COMMANDS = {
    'get-hostname': ('read_hostname', 'Fetches a hostname from the normalized collection'),
    'get-hostname-metadata': (
        'read_hostname_metadata',
        'Fetches hostname metadata from the normalized collection',
    ),
    'get-edge-logic': ('read_edge_logic', 'Fetches edge logic from the normalized collection'),
}


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description='Denormalize hostname policy docs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to denormalizer.yml configuration file (default: config/denormalizer.yml)'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    for name, (_, help_text) in LOOKUP_COMMANDS.items():
        lookup = subparsers.add_parser(name, help=help_text, description=help_text)
        _add_key_arguments(lookup)

    denormalize = subparsers.add_parser(
        'denormalize',
        help='Denormalizes the policy docs of a hostname',
        description='Reads the normalized policy docs of a hostname and writes the denormalized doc',
    )
    _add_key_arguments(denormalize)

    handle_event = subparsers.add_parser(
        'handle-event',
        help='Processes a Pub/Sub envelope like the change notification trigger',
    )
    handle_event.add_argument(
        'file',
        nargs='?',
        default=None,
        help='File containing the envelope JSON (default: stdin)'
    )

    subparsers.add_parser('init-store', help='Creates the documents table if missing')

    return parser.parse_args(argv)


def _add_key_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('site_id', help='Site identifier')
    parser.add_argument('env', help='Site environment (e.g. dev, test, live)')
    parser.add_argument('hostname', help='Hostname')


def configure_logging(level: str) -> logging.Logger:
    """Configure process-wide logging once and return the service logger."""
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    logging.getLogger().setLevel(getattr(logging, level, logging.INFO))
    return logging.getLogger('policy_docs.denormalizer')


def run_command(
    args: argparse.Namespace,
    store: NormalizedDocumentStore,
    logger: logging.Logger,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """
    Run one CLI command against a document store.

    Args:
        args: Parsed arguments
        store: Document store to read from and write to
        logger: Service logger
        stdin: Binary input stream for handle-event without a file
        stdout: Output stream for JSON results

    Returns:
        Exit code (0 = success, 1 = record error, 2 = fatal error)
    """
    stdin = stdin or sys.stdin.buffer
    stdout = stdout or sys.stdout

    try:
        if args.command in LOOKUP_COMMANDS:
            method_name, _ = LOOKUP_COMMANDS[args.command]
            record = getattr(store, method_name)(args.site_id, args.env, args.hostname)
            print(json.dumps(record.to_document()), file=stdout)
            return 0

        if args.command == 'denormalize':
            denormalizer = Denormalizer(store, logger=logger)
            path, denormed = denormalizer.denormalize(args.site_id, args.env, args.hostname)
            print(json.dumps({'path': path, 'document': denormed.to_document()}), file=stdout)
            return 0

        if args.command == 'handle-event':
            if args.file:
                with open(args.file, 'rb') as f:
                    envelope = f.read()
            else:
                envelope = stdin.read()

            handler = UpdateHandler(Denormalizer(store, logger=logger), logger=logger)
            acknowledged = handler.policy_doc_updated(envelope)
            print(json.dumps({'acknowledged': acknowledged}), file=stdout)
            return 0 if acknowledged else 1

        if args.command == 'init-store':
            if not isinstance(store, PostgresDocumentStore):
                logger.error("init-store is only supported for the PostgreSQL document store")
                return 2
            store.create_schema()
            return 0

        logger.error(f"Unknown command: {args.command}")
        return 2

    except (NotFoundError, DeserializationError, InvalidPathError) as e:
        logger.error(
            f"Unable to process {args.command}: {e}",
            extra={'error_type': type(e).__name__},
        )
        return 1

    except StoreError as e:
        logger.error(
            f"Document store error during {args.command}: {e}",
            extra={
                'error_type': type(e).__name__,
                'operation': e.operation,
                'key': e.key,
            },
        )
        return 2

    except OSError as e:
        logger.error(f"Unable to read envelope: {e}")
        return 2


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the denormalizer service.

    Returns:
        Exit code (0 = success, 1 = record error, 2 = fatal error)
    """
    args = parse_args(argv)

    # Load environment variables
    load_dotenv()

    try:
        config: DenormalizerConfig = load_denormalizer_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        configure_logging('INFO').error(f"Configuration error: {e}")
        return 2

    logger = configure_logging('DEBUG' if args.verbose else config.log_level)
    logger.debug("Debug logging enabled")

    try:
        logger.info("Connecting to document store")
        store = PostgresDocumentStore(
            config.database_url,
            table=config.documents_table,
            logger=logger,
        )
        return run_command(args, store, logger)

    except StoreError as e:
        logger.error(f"Document store error: {e}")
        return 2

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # Standard Unix exit code for SIGINT


if __name__ == '__main__':
    sys.exit(main())
