"""
Lucid Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Lucid"
    LUCID_ENV: str = "development"
    DEBUG: bool = False
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8000"

    # Monitoring
    AUTO_START: bool = True
    FACE_SOURCE: str = "simulated"       # simulated | camera
    CAMERA_INDEX: int = 0
    FACIAL_TICK_HZ: float = 10.0
    TYPING_TICK_SECONDS: float = 1.0
    ERROR_DETECTOR: str = "simulated"    # simulated | backspace
    KEYBOARD_CAPTURE: bool = False       # system-wide capture via pynput
    SIMULATION_SEED: Optional[int] = None

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        extra = "allow"


settings = Settings()
