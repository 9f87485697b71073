"""Entry point for ``python -m chainshell``."""

import sys

from chainshell.cli.commands import main

if __name__ == "__main__":
    sys.exit(main())
