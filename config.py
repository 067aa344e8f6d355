"""
Marginalia - Configuration
Provider defaults, generation policy constants, and paths
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# =============================================================================
# PATHS
# =============================================================================
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = Path(os.getenv("MARGINALIA_DATA_DIR", str(PROJECT_ROOT / "data")))
LOGS_DIR = Path(os.getenv("MARGINALIA_LOGS_DIR", str(PROJECT_ROOT / "logs")))
DIAGNOSTIC_LOG_PATH = LOGS_DIR / "diagnostic.log"
PROMPT_LOG_PATH = LOGS_DIR / "prompts.jsonl"
ENGINE_SETTINGS_PATH = DATA_DIR / "engine_settings.json"

# =============================================================================
# VERSION
# =============================================================================
VERSION = "0.1.0"
PROJECT_NAME = "Marginalia"

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"
PROMPT_LOG_ENABLED = os.getenv("PROMPT_LOG_ENABLED", "false").lower() == "true"

# =============================================================================
# PROVIDERS
# =============================================================================
# Two wire families are supported:
#   gemini - Google Generative Language "generateContent" (content parts)
#   openai - OpenAI-compatible "chat/completions" (message array)
PROVIDER_GEMINI = "gemini"
PROVIDER_OPENAI = "openai"
DEFAULT_PROVIDER = os.getenv("MARGINALIA_PROVIDER", PROVIDER_GEMINI)

# Shared key used when the engine settings carry none
DEFAULT_API_KEY = os.getenv("API_KEY", "")

GEMINI_DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
GEMINI_API_VERSION = "v1beta"
GEMINI_DEFAULT_MODEL = "gemini-3-flash-preview"
GEMINI_STRONG_MODEL = "gemini-3-pro-preview"

OPENAI_DEFAULT_BASE_URL = "https://api.siliconflow.cn"
OPENAI_DEFAULT_MODEL = "deepseek-ai/DeepSeek-V3"
OPENAI_STRONG_MODEL = "deepseek-ai/DeepSeek-V3"

# Suggested models when a listing request fails
FALLBACK_MODELS = {
    PROVIDER_GEMINI: ["gemini-2.0-flash-exp", "gemini-1.5-pro", "gemini-1.5-flash"],
    PROVIDER_OPENAI: ["deepseek-ai/DeepSeek-V3", "deepseek-ai/DeepSeek-R1", "Qwen/Qwen2.5-72B-Instruct"],
}

REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "120"))
LIST_MODELS_TIMEOUT_SECONDS = 15.0

# =============================================================================
# ENGINE DEFAULTS
# =============================================================================
DEFAULT_TEMPERATURE = 0.7
DEFAULT_AUTONOMOUS_READING = False
DEFAULT_AUTO_ANNOTATION_COUNT = 2
DEFAULT_AUTO_MEMORY_THRESHOLD = 100  # 0 disables auto-consolidation

# =============================================================================
# GENERATION POLICY
# =============================================================================
# Short annotations, note replies and chat turns are hard-capped
ANNOTATION_MAX_CHARS = 100
ANNOTATION_PLACEHOLDER = "..."

# Autonomous scan asks for between 1 and N passages
SCAN_MIN_ANNOTATIONS = 1
SCAN_MAX_ANNOTATIONS = 5

# Topic labels stay terse regardless of the session temperature
TOPIC_TEMPERATURE = 0.3
TOPIC_PLACEHOLDER = "Thought"
TOPIC_MAX_CHARS = 40

# Long-form review
LONG_REVIEW_MAX_WORDS = 300
LONG_REVIEW_PLACEHOLDER = "A deep resonance."
REVIEW_REPLY_PLACEHOLDER = "I see."

# Memory consolidation
MEMORY_TEMPERATURE = 0.5
MEMORY_MAX_WORDS = 300
MEMORY_INPUT_CHAR_BUDGET = 8000
MEMORY_EMPTY_PLACEHOLDER = "We have just met."
MEMORY_ARCHIVIST_INSTRUCTION = "You are a memory archivist for an AI persona."

# Reading report
REPORT_INPUT_CHAR_BUDGET = 5000
REPORT_DEFAULT_SUMMARY = "A quiet exchange of minds."
REPORT_DEFAULT_KEYWORDS = ["Thought"]
REPORT_DEFAULT_TOPICS = ["General"]
