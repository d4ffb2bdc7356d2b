# config
CONFIG_DIR_KEY = "config_dir"
CONFIG_BASE_URL_KEY = "base_url"
CONFIG_TIMEOUT_SEC_KEY = "timeout_sec"

# env
ENV_CONFIG_DIR = "GEMINI_IMAGE_CONFIG_DIR"
ENV_BASE_URL = "GEMINI_API_BASE_URL"
ENV_TIMEOUT_SEC = "GEMINI_IMAGE_TIMEOUT_SEC"
API_KEY_ENV_NAMES = ("GEMINI_API_KEY", "GOOGLE_API_KEY")

# state（即配置目录下的文件名）
MODEL_KEY = "model"
LAST_OUTPUT_KEY = "last-output"
