import sys

from sshdb.tui import main

if __name__ == "__main__":
    sys.exit(main())
