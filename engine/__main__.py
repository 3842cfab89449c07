"""
원장 엔진 진입점 (1회성 무결성 점검)

실행 방법:
    python -m engine
    python -m engine --settings config/settings.yaml
"""

import asyncio
import sys

from engine.bootstrap import main

if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
