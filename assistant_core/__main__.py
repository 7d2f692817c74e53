import sys

from assistant_core.cli import main

sys.exit(main())
