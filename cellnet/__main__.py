"""Allow `python -m cellnet`."""

import sys

from cellnet.main import main

sys.exit(main())
