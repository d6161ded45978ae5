import os
import json
import base64
from typing import Dict, Optional, Any

import keyring

from .logger import get_logger

logger = get_logger(__name__)

APP_NAME = "BC_XLIFF_Assistant"
CONFIG_FILE = "config.json"
FALLBACK_KEY_FILE = "secrets.json"

DEFAULT_CONFIG = {
    "provider": "openai",
    "endpoint": "",
    "model": "",
    "api_version": "2024-02-01",
    "memory_path": "translation_memory.db",
    "source_lang": "en-US",
    "target_lang": "cs-CZ",
}


class KeyringManager:
    """
    Secure storage of the backend API key using the system keyring.
    Falls back to a local obfuscated file if keyring is unavailable.
    """

    def __init__(self, fallback_file: str = FALLBACK_KEY_FILE):
        self.fallback_file = fallback_file
        self.use_fallback = False
        try:
            # Headless environments often have no usable backend
            keyring.get_password("test_service", "test_user")
        except Exception as e:
            logger.warning(f"System keyring not available: {e}. Using local fallback.")
            self.use_fallback = True

    def set_secret(self, service: str, key: str, value: str):
        if not value:
            return

        if self.use_fallback:
            self._save_fallback(service, key, value)
        else:
            try:
                keyring.set_password(f"{APP_NAME}_{service}", key, value)
            except Exception as e:
                logger.error(f"Failed to save to keyring: {e}. Switching to fallback.")
                self.use_fallback = True
                self._save_fallback(service, key, value)

    def get_secret(self, service: str, key: str) -> Optional[str]:
        if self.use_fallback:
            return self._load_fallback(service, key)
        try:
            return keyring.get_password(f"{APP_NAME}_{service}", key)
        except Exception as e:
            logger.warning(f"Keyring read failed: {e}. Trying fallback.")
            return self._load_fallback(service, key)

    def _save_fallback(self, service: str, key: str, value: str):
        """
        Base64 obfuscation (NOT encryption) so the key is not stored in clear text.
        """
        data = self._read_fallback_file()
        data.setdefault(service, {})[key] = base64.b64encode(value.encode('utf-8')).decode('utf-8')
        try:
            with open(self.fallback_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save fallback secrets: {e}")

    def _load_fallback(self, service: str, key: str) -> Optional[str]:
        encoded = self._read_fallback_file().get(service, {}).get(key)
        if not encoded:
            return None
        try:
            return base64.b64decode(encoded).decode('utf-8')
        except (ValueError, UnicodeDecodeError):
            logger.warning(f"Corrupt fallback secret for {service}/{key}")
            return None

    def _read_fallback_file(self) -> Dict:
        if not os.path.exists(self.fallback_file):
            return {}
        try:
            with open(self.fallback_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable fallback secrets file: {e}")
            return {}


class SettingsManager:
    """
    Backend and language configuration.
    Secrets go to the keyring; everything else to config.json.
    Environment variables LLM_API_KEY, LLM_BASE_URL and LLM_MODEL override both.
    """

    def __init__(self, config_file: str = CONFIG_FILE, keyring_manager: Optional[KeyringManager] = None):
        self.config_file = config_file
        self.keyring = keyring_manager or KeyringManager()
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        config = dict(DEFAULT_CONFIG)
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    config.update(json.load(f))
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Failed to load config: {e}")
        return config

    def save_config(self):
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any):
        self.config[key] = value
        self.save_config()

    def get_api_key(self) -> Optional[str]:
        return os.getenv("LLM_API_KEY") or self.keyring.get_secret("backend", self.config.get("provider", "openai"))

    def set_api_key(self, key: str):
        self.keyring.set_secret("backend", self.config.get("provider", "openai"), key)

    @property
    def endpoint(self) -> str:
        return os.getenv("LLM_BASE_URL") or self.config.get("endpoint", "")

    @property
    def model(self) -> str:
        return os.getenv("LLM_MODEL") or self.config.get("model", "")

    def is_ai_configured(self) -> bool:
        return bool(self.get_api_key() and self.endpoint and self.model)

    def build_client_config(self) -> Dict[str, Any]:
        """Keyword arguments for ai.client.LLMClient."""
        return {
            "api_key": self.get_api_key(),
            "base_url": self.endpoint or None,
            "model": self.model,
            "provider": self.config.get("provider", "openai"),
            "api_version": self.config.get("api_version"),
        }
