import sys

from loreweave.cli import main

sys.exit(main())
