"""Main entry point for prbuddy."""

from prbuddy.server import mcp


def main() -> None:
    """Run the prbuddy MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
