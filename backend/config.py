import os
import logging
from typing import List, Union

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("study-buddy")

# Completion provider configuration (OpenAI-compatible chat completions)
LLM_API_KEY = os.getenv("LLM_API_KEY", "").strip()
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini").strip()
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/")

# Request configuration
REQUEST_TIMEOUT_S = float(os.getenv("REQUEST_TIMEOUT_S", "120"))

# Text returned when the provider sends back no content at all
FALLBACK_TEXT = "No response generated."

# CORS configuration
CORS_ORIGINS_RAW = os.getenv("CORS_ORIGINS", "*").strip()
CORS_ORIGINS: Union[str, List[str]] = (
    "*" if CORS_ORIGINS_RAW == "*"
    else [o.strip() for o in CORS_ORIGINS_RAW.split(",") if o.strip()]
)
CORS_METHODS: List[str] = ["GET", "POST", "OPTIONS"]
CORS_HEADERS: List[str] = ["Content-Type", "Authorization"]
