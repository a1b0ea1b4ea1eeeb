# Make `import alert_engine...` / `import ingestion...` / `import tests.helpers...`
# work under pytest without an editable install.
import os
import sys

ROOT = os.path.dirname(os.path.dirname(__file__))
SRC = os.path.join(ROOT, "src")

for path in (SRC, ROOT):
    if path not in sys.path:
        sys.path.insert(0, path)
