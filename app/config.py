from pydantic_settings import BaseSettings
from typing import Optional
from urllib.parse import quote_plus

class Settings(BaseSettings):
    ENV: str = "local"

    # Full SQLAlchemy URL wins over the postgres_* parts when set
    db_url: Optional[str] = None

    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "afriwrite"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"


    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24


    storage_backend: str = "local"  # local | r2
    storage_root: str = "storage"

    r2_account_id: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_bucket_name: Optional[str] = None


    max_pdf_bytes: int = 10 * 1024 * 1024
    max_cover_bytes: int = 2 * 1024 * 1024

    @property
    def database_url(self):
        if self.db_url:
            return self.db_url

        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
