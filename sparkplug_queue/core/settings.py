from anystore.settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="sparkplug_queue_",
        env_nested_delimiter="__",
        env_file=".env",
        nested_model_default_partial_update=True,
        extra="ignore",
    )

    data_dir: str = "data"
    """Directory for the queue database files, relative to the working dir"""

    default_limit: int = 500
    """Default batch size when listing pending messages"""

    broker_id: str = "default"
    """Broker identity used by the command line when none is given"""

    echo: bool = False
    """Echo sql statements"""
