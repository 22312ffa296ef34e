import sys

from maxreduce.cli import main

sys.exit(main())
