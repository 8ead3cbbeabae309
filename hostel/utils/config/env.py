from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "hostel-registration"
    environment: str = "local"
    debug: bool = True
    log_level: str = "INFO"

    mongo_scheme: str = "mongodb+srv"
    mongo_port: int = 27017
    mongo_host: str = "localhost"
    mongo_db: str = "hostel_registration"
    mongo_password: str | None = None
    mongo_user: str | None = None

    redis_db: int = 0
    redis_port: int = 6379
    redis_host: str = "localhost"
    redis_password: str | None = None

    change_channel: str = "hostel:changes"

    pending_monitor_enabled: bool = True
    pending_scan_interval_seconds: float = 30.0

    model_config = SettingsConfigDict(env_file=(".env",), case_sensitive=False)

    @property
    def mongo_uri(self) -> str:
        auth = ""
        if self.mongo_user and self.mongo_password:
            auth = f"{self.mongo_user}:{self.mongo_password}@"
        host = self.mongo_host
        # SRV records carry the port; plain mongodb:// needs it spelled out
        if self.mongo_scheme == "mongodb":
            host = f"{self.mongo_host}:{self.mongo_port}"
        params = "?retryWrites=true&w=majority"
        return f"{self.mongo_scheme}://{auth}{host}/{self.mongo_db}{params}"

    @property
    def mongo_tls(self) -> bool:
        return self.mongo_scheme == "mongodb+srv"


settings = Settings()
