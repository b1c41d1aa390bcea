#!/usr/bin/env python3
"""
Tower Visibility MCP Server - Entry Point

Starts the async MCP server for tower visibility (viewshed) calculation.
Supports both stdio (for desktop MCP clients) and HTTP (for API access)
transports; the transport is auto-detected when not given.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .constants import EnvVar, ErrorMessages, ServerConfig, SessionProvider, StorageProvider

# Load environment variables from .env file
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 8010


def _resolve_storage_provider() -> str | None:
    """Pick the artifact provider from the environment.

    Returns:
        Provider name, or None when the configured provider cannot be used
    """
    provider = os.environ.get(EnvVar.ARTIFACTS_PROVIDER, StorageProvider.MEMORY)

    if provider == StorageProvider.S3:
        bucket = os.environ.get(EnvVar.BUCKET_NAME)
        aws_key = os.environ.get(EnvVar.AWS_ACCESS_KEY_ID)
        aws_secret = os.environ.get(EnvVar.AWS_SECRET_ACCESS_KEY)
        if not all([bucket, aws_key, aws_secret]):
            logger.warning(
                "S3 provider configured but missing credentials. "
                f"Set {EnvVar.AWS_ACCESS_KEY_ID}, {EnvVar.AWS_SECRET_ACCESS_KEY}, "
                f"and {EnvVar.BUCKET_NAME}."
            )
            return None
        logger.info(f"Using S3 artifact provider (bucket: {bucket})")
        logger.info(f"  Endpoint: {os.environ.get(EnvVar.AWS_ENDPOINT_URL_S3)}")

    elif provider == StorageProvider.FILESYSTEM:
        artifacts_path = os.environ.get(EnvVar.ARTIFACTS_PATH)
        if not artifacts_path:
            logger.warning(
                f"Filesystem provider configured but {EnvVar.ARTIFACTS_PATH} not set. "
                "Defaulting to memory provider."
            )
            return StorageProvider.MEMORY
        Path(artifacts_path).mkdir(parents=True, exist_ok=True)
        logger.info(f"Using filesystem artifact provider (path: {artifacts_path})")

    return provider


def _init_artifact_store() -> bool:
    """
    Initialize the artifact store from environment variables.

    Visibility results are still returned inline when this fails; only the
    GeoTIFF and PNG artifact references are lost.

    Returns:
        True if artifact store was initialized, False otherwise
    """
    provider = _resolve_storage_provider()
    if provider is None:
        return False

    redis_url = os.environ.get(EnvVar.REDIS_URL)
    logger.info(f"  Redis URL: {'configured' if redis_url else 'not configured'}")

    try:
        from chuk_artifacts import ArtifactStore
        from chuk_mcp_server import set_global_artifact_store

        store_kwargs: dict[str, Any] = {
            "storage_provider": provider,
            "session_provider": SessionProvider.REDIS if redis_url else SessionProvider.MEMORY,
        }
        if provider == StorageProvider.S3:
            store_kwargs["bucket"] = os.environ.get(EnvVar.BUCKET_NAME)
        elif provider == StorageProvider.FILESYSTEM:
            store_kwargs["bucket"] = os.environ.get(EnvVar.ARTIFACTS_PATH)

        store = ArtifactStore(**store_kwargs)
        set_global_artifact_store(store)

        logger.info(f"Artifact store initialized successfully (provider: {provider})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize artifact store: {e}")
        return False


def _check_provider_key() -> bool:
    """Warn at startup when no OpenTopography key is configured."""
    if os.environ.get(EnvVar.OPENTOPOGRAPHY_API_KEY):
        return True
    logger.warning(ErrorMessages.MISSING_API_KEY)
    return False


# Import mcp instance and all registered tools from async server
from .async_server import mcp  # noqa: F401, E402


def main() -> None:
    """Main entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description=ServerConfig.DESCRIPTION)
    parser.add_argument(
        "mode",
        nargs="?",
        choices=["stdio", "http"],
        default=None,
        help="Transport mode (stdio for desktop clients, http for API)",
    )
    parser.add_argument(
        "--host", default="localhost", help="Host for HTTP mode (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_HTTP_PORT,
        help=f"Port for HTTP mode (default: {DEFAULT_HTTP_PORT})",
    )

    args = parser.parse_args()

    # Initialize artifact store at startup, not at import time
    _init_artifact_store()
    _check_provider_key()

    mode = args.mode
    if mode is None:
        mode = "stdio" if os.environ.get(EnvVar.MCP_STDIO) or not sys.stdin.isatty() else "http"

    if mode == "stdio":
        print("Tower Visibility MCP Server starting in STDIO mode", file=sys.stderr)
        mcp.run(stdio=True)
    else:
        print(
            f"Tower Visibility MCP Server starting in HTTP mode on {args.host}:{args.port}",
            file=sys.stderr,
        )
        mcp.run(host=args.host, port=args.port, stdio=False)


if __name__ == "__main__":
    main()
