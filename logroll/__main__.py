from __future__ import annotations

import sys

from logroll.cli import main

sys.exit(main())
