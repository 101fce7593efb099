# apuracao/core/config.py

import os
from dotenv import load_dotenv

# Caminho da raiz do projeto (onde está o main.py e o .env)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
ENV_PATH = os.path.join(BASE_DIR, ".env")

# Carrega variáveis do arquivo .env, se existir
if os.path.exists(ENV_PATH):
    load_dotenv(ENV_PATH)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on", "sim")


class Settings:
    def __init__(self) -> None:
        # SQLite por padrão se não houver .env
        self.DATABASE_URL: str = os.getenv(
            "DATABASE_URL",
            "sqlite:///./apuracao.db",
        )

        # Armazenamento dos arquivos de obrigações (bucket local)
        self.STORAGE_DIR: str = os.getenv("STORAGE_DIR", os.path.join(BASE_DIR, "storage"))
        self.STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "fiscal-outputs")

        # Função remota de geração de arquivos; vazio = gerador local
        self.RENDER_FUNCTION_URL: str | None = os.getenv("RENDER_FUNCTION_URL") or None
        self.RENDER_TIMEOUT_SECONDS: float = float(os.getenv("RENDER_TIMEOUT_SECONDS", "30"))

        # mva / reducao_base / substituicao_tributaria calculados como percentual
        # (comportamento legado, precisa de decisão explícita do fiscal)
        self.LEGACY_PERCENTUAL_FALLBACK: bool = _env_bool("LEGACY_PERCENTUAL_FALLBACK", False)

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
        self.CORS_ORIGINS: list[str] = [o.strip() for o in origins.split(",") if o.strip()]


settings = Settings()
