"""Allow ``python -m jdkcache``."""

import sys

from .cli import main

sys.exit(main())
