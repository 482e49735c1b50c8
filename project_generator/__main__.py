"""Allow ``python -m project_generator``."""

import sys

from project_generator.cli import main

sys.exit(main())
