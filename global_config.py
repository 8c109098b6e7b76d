from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    opensearch_host: str = "localhost"
    opensearch_port: int = 9200
    opensearch_username: str | None = None
    opensearch_password: str | None = None
    opensearch_use_ssl: bool = True
    opensearch_verify_certs: bool = False
    use_aws_auth: bool = False
    aws_region: str = "us-east-1"

    index_name: str = "activitylog"
    create_index: bool = False
    document_id_field: str | None = None

    dump_path: str = "activityLog.sql"
    target_table: str = "ACTIVITYLOG"
    schema_path: str | None = None
    strict_columns: bool = False

    batch_size: int = 1000
    report_interval_seconds: float = 30.0
    request_timeout: int = 120
    error_sample_size: int = 2

    log_level: str = "INFO"


global_config = GlobalConfig()
