"""Allow `python -m proposalpilot`."""
import sys

from .cli import main

sys.exit(main())
