"""Main application entry point for the Telegram demo client."""

import sys

from demobot.__main__ import main

if __name__ == "__main__":
    sys.exit(main())
