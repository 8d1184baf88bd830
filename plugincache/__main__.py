"""plugincache Main

This specifies the entrypoint of the plugincache module when run as
executable.
"""

import sys

from plugincache.main_cli import plugincache_cli as main

if __name__ == "__main__":
    r = main()
    sys.exit(r)
