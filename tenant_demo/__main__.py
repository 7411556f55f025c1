"""python -m tenant_demo"""

import sys

from . import main

sys.exit(main())
