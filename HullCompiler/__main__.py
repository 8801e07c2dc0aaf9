import sys

from .glbtohulls import main

sys.exit(main())
