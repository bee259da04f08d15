import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///./kfzlotti.db", alias="KFZ_DATABASE_URL")
    database_echo: bool = Field(False, alias="KFZ_DATABASE_ECHO")
    database_auto_create: bool = Field(True, alias="KFZ_DATABASE_AUTO_CREATE")
    data_base_url: str = Field("http://127.0.0.1:8080/data", alias="KFZ_DATA_BASE_URL")
    index_path: str = Field("index.transformed.json", alias="KFZ_INDEX_PATH")
    raw_index_path: str = Field("index.json", alias="KFZ_RAW_INDEX_PATH")
    topology_path: str = Field("kfz250.topo.json", alias="KFZ_TOPOLOGY_PATH")
    topology_object: str = Field("kreise", alias="KFZ_TOPOLOGY_OBJECT")
    seats_path: str = Field("kreissitze.json", alias="KFZ_SEATS_PATH")
    code_details_path: str = Field("code-details.json", alias="KFZ_CODE_DETAILS_PATH")
    http_timeout_seconds: float = Field(15.0, alias="KFZ_HTTP_TIMEOUT", gt=0)
    http_retries: int = Field(1, alias="KFZ_HTTP_RETRIES", ge=0, le=3)
    update_check_timeout_seconds: float = Field(3.0, alias="KFZ_UPDATE_CHECK_TIMEOUT", gt=0)
    auxiliary_ttl_seconds: int = Field(30 * 24 * 60 * 60, alias="KFZ_AUXILIARY_TTL", gt=0)
    fallback_path: Optional[str] = Field(None, alias="KFZ_FALLBACK_PATH")
    assume_online: bool = Field(True, alias="KFZ_ASSUME_ONLINE")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    def dataset_url(self, path: str) -> str:
        return f"{self.data_base_url.rstrip('/')}/{path.lstrip('/')}"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid KFZlotti configuration: {exc}") from exc
