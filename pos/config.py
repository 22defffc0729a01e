from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/pos"
    log_level: str = "INFO"

    # Catalog
    seed_catalog: bool = True

    # Orders
    order_number_max_attempts: int = 5

    # Kafka
    kafka_enabled: bool = True
    kafka_bootstrap_servers: str = "kafka:9092"

    # Observability
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://jaeger:4318/v1/traces"

    model_config = {"env_file": ".env"}


settings = Settings()
