"""procstream entry point.

Supports: python -m procstream
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
