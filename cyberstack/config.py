import os
import yaml
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

class Config:
    """
    Centralized configuration for the CyberStack portfolio backend.
    Secrets come from the environment; tunables come from the YAML files
    under config/settings and are injected below as class attributes.
    """

    # Base Directories
    BASE_DIR = Path(__file__).resolve().parent.parent
    CONFIG_DIR = os.path.join(BASE_DIR, 'config')
    PROMPTS_DIR = os.path.join(CONFIG_DIR, 'prompts')
    SETTINGS_DIR = os.path.join(CONFIG_DIR, 'settings')
    DATA_DIR = os.path.join(BASE_DIR, 'data')

    # Agent context sources
    PROFILE_PATH = os.path.join(DATA_DIR, 'profile.json')
    PERSONA_TEMPLATE_PATH = os.path.join(PROMPTS_DIR, 'expert_persona.xml')

    # Credentials
    SECRET_KEY = os.environ.get('SECRET_KEY', 'cyberstack-dev-key')
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
    HF_TOKEN = os.environ.get('HF_TOKEN')

    # Key-value store
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379')

    # GitHub
    GITHUB_API_URL = os.environ.get('GITHUB_API_URL', 'https://api.github.com')
    GITHUB_TOKEN = os.environ.get('GITHUB_TOKEN')
    GITHUB_REPO_OWNER = os.environ.get('GITHUB_REPO_OWNER')

    # Background executor
    MAX_WORKERS_BACKGROUND = 2
    MODEL_RUNTIME_AUTOSTART = os.environ.get("MODEL_RUNTIME_AUTOSTART", "true").lower() != "false"

    @staticmethod
    def load_config_yaml(filename, subfolder='settings'):
        """Utility to load configuration files from the settings or prompts directories."""
        directory = Config.SETTINGS_DIR if subfolder == 'settings' else Config.PROMPTS_DIR
        path = os.path.join(directory, filename)
        if not os.path.exists(path):
            return {}
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

# --- DATA INITIALIZATION ---

# Load Core YAML Settings
app_params = Config.load_config_yaml('app_params.yaml')
local_model_params = Config.load_config_yaml('local_models.yaml')

# --- ATTRIBUTE INJECTION ---
# Loaded values are injected into the Config class for static access.

# View Counter
views_params = app_params.get('views', {})
Config.VIEW_DEDUP_TTL_SECONDS = views_params.get('dedup_ttl_seconds', 60 * 60 * 24)
Config.VIEW_RETRY_MAX_ATTEMPTS = views_params.get('retry', {}).get('max_attempts', 3)
Config.VIEW_RETRY_DELAY = views_params.get('retry', {}).get('delay_seconds', 0.5)
Config.VIEW_RETRY_BACKOFF = views_params.get('retry', {}).get('backoff', 2.0)

# Chat Log
Config.CHAT_PREVIEW_LENGTH = app_params.get('chats', {}).get('preview_length', 50)

# GitHub Revalidation
Config.GITHUB_CACHE_SECONDS = app_params.get('github', {}).get('cache_seconds', 3600)
Config.GITHUB_TIMEOUT = app_params.get('github', {}).get('timeout_seconds', 10)

# Remote (Gemini) Generation Parameters
ai_params = app_params.get('ai_params', {})
Config.GEMINI_MODEL = ai_params.get('model', 'gemini-flash-latest')
Config.GEMINI_TEMP = ai_params.get('temperature', 0.1)
Config.GEMINI_TOP_P = ai_params.get('top_p', 0.95)
Config.GEMINI_TOP_K = ai_params.get('top_k', 64)
Config.GEMINI_MAX_TOKENS = ai_params.get('max_output_tokens', 2048)

# Local Model Coordination
coordination = local_model_params.get('coordination', {})
Config.LOCAL_MODELS_ENABLED = coordination.get('enabled', True)
Config.RAM_THRESHOLD_GB = coordination.get('ram_threshold_gb', 4)
Config.SWITCH_GRACE_SECONDS = coordination.get('switch_grace_seconds', 0.1)

chat_model = local_model_params.get('chat', {})
Config.CHAT_MODEL_ID = chat_model.get('id', 'google/gemma-3-1b-it')
Config.CHAT_MAX_NEW_TOKENS = chat_model.get('max_new_tokens', 512)
Config.CHAT_TEMPERATURE = chat_model.get('temperature', 0.1)

translator_model = local_model_params.get('translator', {})
Config.TRANSLATOR_MODEL_ID = translator_model.get('id', 'facebook/nllb-200-distilled-600M')
Config.TRANSLATOR_BATCH_SIZE = translator_model.get('batch_size', 4)
Config.TRANSLATOR_MAX_NEW_TOKENS = translator_model.get('max_new_tokens', 128)
Config.TRANSLATOR_DEFAULT_LANGUAGE = translator_model.get('default_language', 'eng_Latn')

Config.MODEL_CACHE_DIR = local_model_params.get('cache_dir') or os.path.join(Config.BASE_DIR, 'models')
