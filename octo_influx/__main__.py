import sys

from octo_influx.main import main

sys.exit(main())
