"""
mindone command line

    mindone-agent-server [serve] [--host H] [--port P] [--agent-type T]
    mindone-agent-server check
"""
import argparse
import logging
import math
import os
import sys
from typing import Optional

from mindone.config import get_settings
from mindone.services.agent_discovery import find_agent_command, check_agent_auth


def run_setup_check() -> bool:
    """Print whether the agent CLI and its credentials are in place."""
    settings = get_settings()

    print("\nmindone setup check\n")
    print("Checking agent CLI...")
    command = find_agent_command(settings)
    if command is None:
        print("  x Agent CLI not found")
        print("\n  To fix:")
        print("  1. Make sure the Cursor app is installed")
        print("  2. Add Cursor to your PATH (usually done automatically on macOS)")
        print("  3. Or point MINDONE_AGENT_COMMAND at the agent executable\n")
        return False
    print(f"  ok {' '.join(command)}")

    print("\nChecking agent authentication...")
    auth = check_agent_auth()
    if not auth.authenticated:
        print("  x Not authenticated")
        print("\n  To fix:")
        print("  1. Set the CURSOR_API_KEY environment variable")
        print("  2. Or run: cursor agent login\n")
        return False
    print(f"  ok Authenticated ({auth.method})")

    print("\nAll checks passed! Agent mode is ready to use.\n")
    return True


def graceful_shutdown_timeout(grace_seconds: float) -> Optional[int]:
    """Whole seconds uvicorn waits for open streams; None waits without limit."""
    if grace_seconds <= 0:
        return None
    return math.ceil(grace_seconds)


def serve(host: str, port: int):
    import uvicorn

    settings = get_settings()
    print("=" * 50)
    print("mindone agent relay")
    print("=" * 50)
    print(f"Server starting at http://{host}:{port}")
    print(f"Agent: {settings.agent_type}")
    print("=" * 50)

    uvicorn.run(
        "mindone.main:app",
        host=host,
        port=port,
        reload=settings.debug,
        timeout_graceful_shutdown=graceful_shutdown_timeout(settings.shutdown_grace_seconds)
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="mindone-agent-server", description="Local relay for the mindone dev overlay")
    parser.add_argument("command", nargs="?", default="serve", choices=["serve", "check"])
    parser.add_argument("--host", default=None, help="Interface to bind (default: MINDONE_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: MINDONE_AGENT_PORT)")
    parser.add_argument("--agent-type", default=None, help="Agent to run (default: MINDONE_AGENT_TYPE)")
    parser.add_argument("--verbose", action="store_true", help="Log agent progress at debug level")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Flags become environment so the app module picks them up when uvicorn imports it
    if args.port is not None:
        os.environ["MINDONE_AGENT_PORT"] = str(args.port)
    if args.host is not None:
        os.environ["MINDONE_HOST"] = args.host
    if args.agent_type is not None:
        os.environ["MINDONE_AGENT_TYPE"] = args.agent_type
    get_settings.cache_clear()

    if args.command == "check":
        return 0 if run_setup_check() else 1

    settings = get_settings()
    serve(settings.host, settings.agent_port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
