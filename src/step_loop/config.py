"""Centralized settings for the step-loop route engine."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "STEP_LOOP_"}

    # OSRM foot-routing service
    osrm_base_url: str = "https://router.project-osrm.org"
    osrm_profile: str = "foot"
    osrm_timeout_s: int = 20          # transport bound per round trip
    osrm_tries: int = 1               # attempts per request on timeout/connection errors
    user_agent: str = "StepLoop/0.1.0"

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Unsafe regions — empty string means the bundled GeoJSON file
    unsafe_regions_path: str = ""

    # "fr" | "en"
    instruction_locale: str = "fr"

    # Search budget
    max_attempts: int = 20

    # Walking model
    step_length_m: float = 0.75
    walking_speed_kmh: float = 5.0


settings = Settings()
