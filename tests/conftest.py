from __future__ import annotations

import os

os.environ.setdefault("AUTH_SIGNING_KEY", "test-signing-key")
os.environ.setdefault("PIAPI_API_KEY", "test-api-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FRAME_BASE_URL", "https://frames.faceswap.test")
