"""Entry point for Breaking Feed: python -m breaking_feed"""

import sys

from .lambda_handler import main

sys.exit(main())
