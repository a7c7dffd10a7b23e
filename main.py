"""Main entry point for the VibeMaster gateway.

- Web mode (default): FastAPI app serving the front-end
- Invoke mode: run one command from the terminal
"""

import sys

from gateway.cli import main

if __name__ == "__main__":
    sys.exit(main())
