"""CLI interface for Zephyr Scale MCP."""


def main() -> None:
    """Entry point for the zephyr-mcp CLI."""
    from zephyr_scale_mcp.cli.app import create_app

    app = create_app()
    app()


if __name__ == "__main__":
    main()
