"""Entry point for running the kinship server as a module.

Usage:
    python -m kinship_server --family-id FAM123 --email me@example.com
    kinship-server --data-file ~/family.json --role sub-admin
"""

import argparse
import logging
import os


def main():
    """Main entry point for the kinship MCP server."""
    parser = argparse.ArgumentParser(
        description="Kinship MCP Server - Manage a family tree via MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kinship-server --family-id FAMXYZ --email me@example.com --role admin
  kinship-server -d ~/family.json -f FAMXYZ

Environment variables:
  KINSHIP_DATA_FILE     JSON file to persist people in (default: memory only)
  KINSHIP_FAMILY_ID     Family (tenant) the caller belongs to
  KINSHIP_ACTOR_EMAIL   Caller's email, used to find their own person record
  KINSHIP_ROLE          admin, sub-admin or viewer (default: viewer)
  KINSHIP_TREE_DEPTH    Default generations per family tree (default: 3)
""",
    )
    parser.add_argument("--data-file", "-d", metavar="PATH", help="JSON data file")
    parser.add_argument("--family-id", "-f", metavar="ID", help="Family (tenant) id")
    parser.add_argument("--email", "-e", metavar="EMAIL", help="Caller's email")
    parser.add_argument(
        "--role", "-r", choices=["admin", "sub-admin", "viewer"], help="Caller's role"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # CLI args override env vars
    if args.data_file:
        os.environ["KINSHIP_DATA_FILE"] = args.data_file
    if args.family_id:
        os.environ["KINSHIP_FAMILY_ID"] = args.family_id
    if args.email:
        os.environ["KINSHIP_ACTOR_EMAIL"] = args.email
    if args.role:
        os.environ["KINSHIP_ROLE"] = args.role

    # Import and initialize AFTER setting env vars
    from . import initialize, mcp

    initialize()
    mcp.run()


if __name__ == "__main__":
    main()
