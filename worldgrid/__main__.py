"""Allow ``python -m worldgrid``."""

import sys

from .main import main

sys.exit(main())
