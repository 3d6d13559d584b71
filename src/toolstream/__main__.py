import sys

from toolstream.cli import main

sys.exit(main())
