import sys

from pipeline_opf.cli import main

sys.exit(main())
