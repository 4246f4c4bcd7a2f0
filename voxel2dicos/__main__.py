import sys

from voxel2dicos.cli import main

sys.exit(main())
