# src/testfork/forked/__main__.py

import sys

from testfork.forked.launcher import launch

if __name__ == "__main__":
    sys.exit(launch())

# 🔼⚙️
