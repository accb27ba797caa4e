import os
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    'chat_model': 'gemini-3-pro-preview',
    'temperature': 0.5,
    'top_k': 40,
    'top_p': 0.95,
    'max_output_tokens': 2048,
    'tts_model': 'gemini-2.5-flash-preview-tts',
    'tts_voice': 'Kore',
    'fallback_locale': 'am-ET',
    'output_device': None,
    'max_sessions': 100,
    'max_history_turns': 50,
    'max_history_messages': 200,
    'stream_queue_size': 32,
    'auto_speak': False,
    'system_prompt': (
        "You are Zemenai, a helpful assistant. "
        "Answer in the language the user writes in and keep replies concise."
    ),
}

API_KEY_ENV_VARS = ('GOOGLE_API_KEY', 'API_KEY')


def load_config(config_file: str = 'config.yaml') -> Dict[str, Any]:
    """
    Load config.yaml on top of the built-in defaults.
    A missing or unreadable file is not fatal.
    """
    config = dict(DEFAULT_CONFIG)
    try:
        with open(config_file, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        config.update(loaded)
    except Exception as e:
        print(f"⚠️ Warning: Could not load {config_file} ({e}). Using defaults.")
    return config


def resolve_api_key() -> Optional[str]:
    """Read the model credential from the environment, warning when absent."""
    for name in API_KEY_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    print(f"⚠️ Warning: {' / '.join(API_KEY_ENV_VARS)} is not set. Remote model calls will fail.")
    return None


config = load_config()
