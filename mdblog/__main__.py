"""Entry point for the mdblog CLI when run as ``python -m mdblog``."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
