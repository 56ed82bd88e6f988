import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Default LLM endpoint: Google's public Gemini API
    DEFAULT_LLM_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_PRIMARY_MODEL = "gemini-2.5-flash"
    DEFAULT_BACKUP_MODEL = "gemini-2.0-flash"

    FILE_EXPIRATION_HOURS = 24
    TASK_RETENTION_DAYS = 7

    def __init__(self):
        self._gemini_url = self.DEFAULT_LLM_BASE_URL
        self._emulator_url = os.environ.get(
            "EMULATOR_URL", "http://emulator:8000/v1beta"
        ).rstrip("/")
        # Start with whatever LLM_BASE_URL says, or default to Gemini
        initial = os.environ.get("LLM_BASE_URL", self.DEFAULT_LLM_BASE_URL).rstrip("/")
        self._llm_base_url = initial
        self._primary_model = os.environ.get("PRIMARY_MODEL", self.DEFAULT_PRIMARY_MODEL)
        self._backup_model = os.environ.get("BACKUP_MODEL", self.DEFAULT_BACKUP_MODEL)

        self.data_dir = os.path.abspath(
            os.environ.get("DATA_DIR", os.path.join(os.path.dirname(__file__), "../data"))
        )
        self.max_upload_bytes = int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
        self.retention_interval_seconds = float(os.environ.get("RETENTION_INTERVAL_SECONDS", "3600"))

    def get_llm_base_url(self) -> str:
        """Returns the base URL for the LLM API (e.g. 'https://generativelanguage.googleapis.com/v1beta')."""
        return self._llm_base_url

    def set_llm_base_url(self, url: str):
        """Switch the active LLM endpoint at runtime."""
        self._llm_base_url = url.rstrip("/")

    def get_emulator_url(self) -> str:
        return self._emulator_url

    def get_gemini_url(self) -> str:
        return self._gemini_url

    def is_emulator(self) -> bool:
        """Returns True if pointing at the local emulator instead of Google."""
        return "googleapis.com" not in self._llm_base_url

    def get_active_provider(self) -> str:
        """Returns 'emulator' or 'gemini' based on current LLM URL."""
        return "emulator" if self.is_emulator() else "gemini"

    def get_models(self) -> list[str]:
        """Fallback order used for every generation call: primary first, then backup."""
        return [self._primary_model, self._backup_model]

    def set_models(self, primary: str, backup: str):
        self._primary_model = primary
        self._backup_model = backup

    def bucket_dir(self, bucket: str) -> str:
        path = os.path.join(self.data_dir, bucket)
        os.makedirs(path, exist_ok=True)
        return path


settings = Settings()
