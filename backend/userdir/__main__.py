"""Main entry point for the user directory command line."""

import sys

from userdir.cli import main

if __name__ == "__main__":
    sys.exit(main())
