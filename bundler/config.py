"""
Configuration constants for the exhibit bundler.
Values marked "env" can be overridden from the process environment or a local .env file.
"""

import os

# --------------------------------------------------------------------------- #
# Groups
# --------------------------------------------------------------------------- #
MAIN = "main"
ATTACHMENT = "attachment"
EVIDENCE = "evidence"

GROUP_ORDER = (MAIN, ATTACHMENT, EVIDENCE)

DEFAULT_LABELS = {
    ATTACHMENT: "附件",
    EVIDENCE: "證物",
}

# --------------------------------------------------------------------------- #
# Stamp geometry (points, measured from the page's own visible edges)
# --------------------------------------------------------------------------- #
LABEL_OFFSET_X = 100      # from right edge
LABEL_OFFSET_Y = 50       # from top edge, baseline
CAPTION_OFFSET_X = 120    # from right edge
CAPTION_OFFSET_Y = 30     # from bottom edge, baseline
CAPTION_FONT_SIZE = 10
CAPTION_TEMPLATE = "第 {page} 頁 共 {total} 頁"

MIN_FONT_SIZE = 10
MAX_FONT_SIZE = 30
DEFAULT_FONT_SIZE = 16

# --------------------------------------------------------------------------- #
# Fonts (env)
# --------------------------------------------------------------------------- #
EMBEDDED_FONT_NAME = "bundlerfont"

FONT_URL = os.environ.get(
    "BUNDLER_FONT_URL",
    "https://fonts.gstatic.com/s/notosanssc/v36/k3kCo84MPvpLmixcA63oeAL7Iqp5IZJF9bmaG9_FnYxNbPzS5HE.ttf",
)
FONT_PATH = os.environ.get("BUNDLER_FONT_PATH", "")
FONT_TIMEOUT = float(os.environ.get("BUNDLER_FONT_TIMEOUT", "15"))

# PyMuPDF built-in font used when no embeddable font is available.
# "china-t" keeps Traditional Chinese labels legible, "helv" is Latin only.
FALLBACK_FONT = os.environ.get("BUNDLER_FALLBACK_FONT", "china-t")
REQUIRE_FONT = os.environ.get("BUNDLER_REQUIRE_FONT", "0") == "1"

# --------------------------------------------------------------------------- #
# Web (env)
# --------------------------------------------------------------------------- #
SECRET_KEY = os.environ.get("BUNDLER_SECRET_KEY", "dev-bundler-secret")
MAX_UPLOAD_MB = int(os.environ.get("BUNDLER_MAX_UPLOAD_MB", "200"))
DOWNLOAD_NAME = "整合文件.pdf"
# Sessions untouched for this long are discarded on the next lookup
SESSION_IDLE_SECONDS = float(os.environ.get("BUNDLER_SESSION_IDLE_SECONDS", "3600"))
