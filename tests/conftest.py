from __future__ import annotations

import os
import tempfile

# Keep log files and per-user state out of the real home directory.
_SCRATCH = tempfile.mkdtemp(prefix="pagechat-tests-")
os.environ.setdefault("PAGECHAT_LOG_DIR", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("PAGECHAT_HOME", os.path.join(_SCRATCH, "home"))
os.environ.setdefault("QT_QPA_PLATFORM", "minimal")
