
"""Configurações Pydantic Settings para o motor de segurança."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    """Configurações da aplicação. Carrega de env e .env.

    Todas as credenciais devem vir via env. Nunca hardcode.
    """
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SC_", case_sensitive=False)

    # Flask
    flask_debug: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    admin_key: str = Field(default="", description="Chave exigida no header X-Admin-Key")

    # DB (backing store das regras)
    database_url: str = Field(default="sqlite:///./safechat.db", description="URL do banco, ex: postgresql+psycopg://user:pass@db:5432/app")

    # Cache de regras
    rule_cache_ttl_s: int = Field(default=300, description="TTL padrão; sobrescrito pelo system setting cache_ttl")
    store_timeout_s: float = Field(default=2.0)
    store_workers: int = Field(default=4)

    # Classificador de conteúdo (endpoint /moderations compatível com OpenAI)
    classifier_base_url: str = Field(default="https://api.openai.com/v1")
    classifier_api_key: str = Field(default="")
    classifier_model: str = Field(default="omni-moderation-latest")
    classifier_timeout_s: float = Field(default=5.0)

    # LLM / LiteLLM (gerador de respostas)
    litellm_base_url: str = Field(default="http://localhost:4000", description="URL do gateway LiteLLM")
    litellm_model: str = Field(default="gpt-4o-mini")
    litellm_timeout_s: int = Field(default=12)
    litellm_max_tokens: int = Field(default=500)
    litellm_temperature: float = Field(default=0.3)

    # Outros
    audit_enabled: bool = Field(default=True)
    audit_max_pending: int = Field(default=1000, description="Inserts de auditoria pendentes antes de descartar")
    log_level: int = Field(default=20)
