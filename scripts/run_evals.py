#!/usr/bin/env python3
"""Run skill evaluations. Requires the package to be installed (`pip install -e .`)."""

import sys

from skill_eval.cli import main

if __name__ == "__main__":
    sys.exit(main())
