"""Allow running the CLI with ``python -m orderflow.cli``."""

from orderflow.cli import main

if __name__ == "__main__":
    main()
