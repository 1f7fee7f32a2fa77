import sys

from laborsim.cli import main

sys.exit(main())
