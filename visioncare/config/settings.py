from functools import lru_cache
from typing import Any

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuração da aplicação utilizando Pydantic BaseSettings.
    Carrega automaticamente as variáveis de ambiente (e o arquivo .env).
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "VisionCare Clinic Core"
    PROJECT_DESCRIPTION: str = "Reconciliação de pacientes e ciclo de vida de consultas oftalmológicas"
    VERSION: str = "0.1.0"
    DEBUG: bool = Field(False, description="Modo de depuração")
    ENVIRONMENT: str = Field("production", description="Ambiente de execução")
    CORS_ORIGINS: list[str] = Field(default=[], description="Origens permitidas para CORS (fora do modo debug)")

    # Logging
    LOG_LEVEL: str = Field("INFO", description="Nível de log (DEBUG, INFO, WARNING, ERROR)")
    LOG_FORMAT: str = Field("colored", description="Formato do log: colored, json ou plain")
    LOG_FILE: str | None = Field(None, description="Arquivo opcional para log em JSON")

    # Error tracking
    SENTRY_DSN: str | None = Field(None, description="DSN do Sentry (desativado quando vazio)")

    # Local PostgreSQL database (patients, consultations, medical_records)
    DB_HOST: str = Field("localhost", description="Host do PostgreSQL")
    DB_PORT: int = Field(5432, description="Porta do PostgreSQL")
    DB_NAME: str = Field("visioncare", description="Nome do banco de dados")
    DB_USER: str = Field("postgres", description="Usuário do PostgreSQL")
    DB_PASSWORD: str | None = Field(None, description="Senha do PostgreSQL")
    DB_ECHO: bool = Field(False, description="Log das queries SQL (somente debug)")

    # Database connection pool settings
    DB_POOL_SIZE: int = Field(10, description="Tamanho do pool de conexões")
    DB_MAX_OVERFLOW: int = Field(20, description="Overflow máximo do pool")
    DB_POOL_RECYCLE: int = Field(3600, description="Reciclar conexões a cada X segundos")
    DB_POOL_TIMEOUT: int = Field(30, description="Timeout para obter conexão do pool")

    # External scheduling system (Supabase/PostgREST)
    SCHEDULE_API_URL: str = Field("http://localhost:54321", description="URL do projeto de agendamentos externos")
    SCHEDULE_API_KEY: str = Field("", description="Chave de API do projeto de agendamentos")
    SCHEDULE_APPOINTMENTS_TABLE: str = Field("agendamentos", description="Tabela de agendamentos externos")

    # Central customer registry (Supabase/PostgREST)
    CENTRAL_REGISTRY_URL: str = Field("http://localhost:54322", description="URL do cadastro central de clientes")
    CENTRAL_REGISTRY_API_KEY: str = Field("", description="Chave de API do cadastro central")
    CENTRAL_CUSTOMERS_TABLE: str = Field("clientes", description="Tabela de clientes do cadastro central")

    # HTTP resilience
    EXTERNAL_HTTP_TIMEOUT: float = Field(15.0, description="Timeout das chamadas HTTP externas (segundos)")
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(5, description="Falhas consecutivas para abrir o circuito")
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: float = Field(60.0, description="Segundos até testar a recuperação")

    # Clinic
    CLINIC_TIMEZONE: str = Field("America/Sao_Paulo", description="Fuso horário da clínica (estatísticas do dia)")

    # Consultation auto-save
    AUTOSAVE_DEBOUNCE_SECONDS: float = Field(2.0, description="Período de silêncio antes do auto-save")

    # Background reconciliation of the external appointment status
    RECONCILIATION_ENABLED: bool = Field(True, description="Ativa o job de reconciliação do status externo")
    RECONCILIATION_INTERVAL_SECONDS: int = Field(300, description="Intervalo entre execuções do job")
    RECONCILIATION_BATCH_SIZE: int = Field(50, description="Consultas processadas por execução")
    RECONCILIATION_MAX_ATTEMPTS: int = Field(10, description="Tentativas máximas por consulta")
    RECONCILIATION_TIMEZONE: str = Field("America/Sao_Paulo", description="Fuso horário do scheduler")

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def __init__(self, **data: Any):
        super().__init__(**data)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("colored", "json", "plain"):
            raise ValueError("LOG_FORMAT must be 'colored', 'json' or 'plain'")
        return v

    @field_validator("DB_POOL_SIZE")
    @classmethod
    def validate_pool_size(cls, v):
        if v < 1:
            raise ValueError("DB_POOL_SIZE must be at least 1")
        if v > 100:
            raise ValueError("DB_POOL_SIZE should not exceed 100")
        return v

    @field_validator("AUTOSAVE_DEBOUNCE_SECONDS")
    @classmethod
    def validate_debounce(cls, v):
        if v < 0:
            raise ValueError("AUTOSAVE_DEBOUNCE_SECONDS must be 0 or greater")
        return v

    @computed_field
    @property
    def database_url(self) -> str:
        """URL síncrona do PostgreSQL (usada pelo Alembic)"""
        if self.DB_PASSWORD:
            return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        return f"postgresql://{self.DB_USER}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local"]


@lru_cache
def get_settings() -> Settings:
    """
    Retorna uma instância em cache da configuração.
    Evita carregar as variáveis de ambiente várias vezes.
    """
    return Settings()
