#!/usr/bin/env python3
"""
Mistral Chat - Command Line Entry Point

Send one prompt to the Mistral chat completions endpoint and print the reply,
streamed token by token unless ``--no-stream`` is given.
"""

import argparse
import asyncio
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from mistral_client import (
    Config,
    ConfigError,
    MistralClient,
    MistralError,
    RateLimitError,
    StreamError,
    extract_content,
)


DEFAULT_MODEL = "mistral-large-latest"


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "model"):
            log_data["model"] = record.model
        if hasattr(record, "request_id"):
            log_data["request_id"] = record.request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(config: Config, verbose: bool = False) -> None:
    """
    Set up logging configuration.

    Logs go to stderr so that stdout carries only the model's reply.

    Args:
        config: Configuration object
        verbose: Whether to enable verbose logging
    """
    log_level = logging.DEBUG if verbose else getattr(logging, config.get_log_level().upper(), logging.INFO)
    log_format = config.get_log_format()
    log_file = config.get_log_file()

    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler with rotation
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Chat with a Mistral model from the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python mistralchat.py "Write a haiku about autumn"
  python mistralchat.py --model mistral-small-latest --no-stream "Hello"
  python mistralchat.py --config client.json --verbose "Explain SSE"
        """
    )

    parser.add_argument(
        "prompt",
        help="User message to send"
    )

    parser.add_argument(
        "--model",
        type=str,
        default=DEFAULT_MODEL,
        help=f"Model to use (default: {DEFAULT_MODEL})"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON configuration file"
    )

    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Wait for the complete reply instead of streaming it"
    )

    parser.add_argument(
        "--temperature",
        type=float,
        default=None,
        help="Sampling temperature"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Override log level"
    )

    return parser.parse_args(argv)


def report_error(error: Exception) -> None:
    """Print a one-line description of a failed call to stderr."""
    if isinstance(error, RateLimitError) and error.retry_after is not None:
        print(f"Error: {error} (retry after {error.retry_after:g}s)", file=sys.stderr)
    else:
        print(f"Error: {error}", file=sys.stderr)


async def run_chat(client: MistralClient, args: argparse.Namespace) -> int:
    """
    Send the prompt and print the reply.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    messages = [{"role": "user", "content": args.prompt}]
    options = {"temperature": args.temperature}

    if args.no_stream:
        result = await client.chat.complete(messages, model=args.model, **options)
        if not result.ok:
            report_error(result.error)
            return 1
        choices = (result.value or {}).get("choices") or [{}]
        print(choices[0].get("message", {}).get("content", ""))
        return 0

    def on_event(event):
        content = extract_content(event)
        if content:
            sys.stdout.write(content)
            sys.stdout.flush()

    result = await client.chat.stream_to(messages, on_event, model=args.model, **options)
    print()
    if not result.ok:
        report_error(result.error)
        return 1

    logging.debug(f"Received {result.value} stream events")
    return 0


async def main(argv: Optional[list] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = parse_arguments(argv)

    try:
        config = Config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.log_level:
        config.config["logging"]["level"] = args.log_level

    setup_logging(config, args.verbose)
    logging.debug(f"Using {config!r} with model {args.model}")

    try:
        async with MistralClient(config) as client:
            return await run_chat(client, args)
    except (MistralError, StreamError) as e:
        logging.debug("Chat failed", exc_info=True)
        report_error(e)
        return 1


def cli() -> None:
    """Console script entry point."""
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
