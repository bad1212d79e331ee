import sys

from termviz.cli import main

sys.exit(main())
