from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    env_file = ".env" if Path("/.dockerenv").exists() else ".env.local"

    current_path = Path.cwd()

    for path in [current_path] + list(current_path.parents):
        env_path = path / env_file
        if env_path.exists():
            return str(env_path)

    return env_file


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+pysqlite:///./console_rental.db"
    db_pool_timeout_sec: float = 5.0

    # Shop clock
    shop_timezone: str = "Asia/Jakarta"

    # Billing
    billing_quantum_min: int = 6
    day_start_hour: int = 6  # inclusive
    day_end_hour: int = 18  # exclusive

    # Default rates (currency/hour), used to seed missing pricing rows
    ps3_day_rate: int = 5000
    ps3_night_rate: int = 4000
    ps4_day_rate: int = 7000
    ps4_night_rate: int = 6000
    ps5_day_rate: int = 10000
    ps5_night_rate: int = 8000

    # Live display ticker
    tick_interval_sec: float = 1.0
    ticker_enabled: bool = True

    # Dashboard alerts
    low_stock_threshold: int = 10
    expiring_within_days: int = 3

    # Ambient
    log_level: str = "INFO"
    metrics_enabled: bool = True

    def default_rates(self) -> dict[str, tuple[int, int]]:
        return {
            "PS3": (self.ps3_day_rate, self.ps3_night_rate),
            "PS4": (self.ps4_day_rate, self.ps4_night_rate),
            "PS5": (self.ps5_day_rate, self.ps5_night_rate),
        }
