import sys

from nightride.app import main

if __name__ == "__main__":
    sys.exit(main())
