"""Allow ``python -m sachi``."""

from sachi.cli import main

if __name__ == "__main__":
    main()
