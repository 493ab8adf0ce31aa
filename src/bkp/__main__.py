"""Entry point: python -m bkp"""

from .surfaces.cli.cli import main

if __name__ == "__main__":
    main()
