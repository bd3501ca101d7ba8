"""Runs trustctl."""
import sys

from trustctl import main


if __name__ == '__main__':
    sys.exit(main.main())
