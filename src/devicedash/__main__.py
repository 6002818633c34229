import sys

from devicedash.cli import main

sys.exit(main())
