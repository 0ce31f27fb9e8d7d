"""Allow `python -m scripts` by running the classification batch."""

import sys

from scripts.classify_businesses import main

sys.exit(main())
