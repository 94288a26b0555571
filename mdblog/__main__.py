import sys

from mdblog.cli import main

sys.exit(main())
