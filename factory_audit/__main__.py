"""``python -m factory_audit`` のエントリーポイント。"""

import sys

from .main import main

sys.exit(main())
