import sys

from resmon.cli import main

sys.exit(main())
