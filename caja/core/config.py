from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = Field(default="Cajas", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    database_url: str = Field(default="sqlite:///./cajas.db", alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    moneda_local: str = Field(default="VES", alias="MONEDA_LOCAL")
    # EUR -> USD usado al convertir efectivo en euros (no se consulta fuente externa)
    tasa_eur_usd: float = Field(default=1.1, gt=0, alias="TASA_EUR_USD")
    umbral_cuadre: float = Field(default=1.0, alias="UMBRAL_CUADRE")
    umbral_alerta: float = Field(default=50.0, alias="UMBRAL_ALERTA")
    dias_por_vencer: int = Field(default=7, alias="DIAS_POR_VENCER")

    cierres_audit_file: str = Field(default="data/cierres_audit.jsonl", alias="CIERRES_AUDIT_FILE")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in ("prod", "production")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
