from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment (FAVES_*)."""

    model_config = SettingsConfigDict(env_prefix="FAVES_", env_file=".env", extra="ignore")

    app_name: str = "Faves Picker"

    # Undo depth; history keeps history_length + 1 snapshots
    history_length: int = 3

    favorites_query_param: str = "favs"

    storage_key: str = "faves"

    # Sessions kept in memory by the HTTP server; older ones are evicted
    max_sessions: int = 1000

    # JSON file the CLI persists picker state in
    state_file: str = "faves_state.json"

    log_level: str = "INFO"


settings = Settings()
