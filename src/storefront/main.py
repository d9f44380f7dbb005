"""Main entry point for the storefront CLI.

Usage:
    python -m storefront.main --help
    storefront --help  # If installed via pip/uv
"""

from storefront.cli import main

if __name__ == "__main__":
    main()
