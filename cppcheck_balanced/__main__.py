"""``python -m cppcheck_balanced`` → :func:`cppcheck_balanced.checkers._main`."""

import sys

from cppcheck_balanced.checkers import _main

if __name__ == "__main__":
    sys.exit(_main())
