import sys

from curriculum_map.cli import main

sys.exit(main())
