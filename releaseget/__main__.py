import sys

from releaseget.main import main

sys.exit(main())
