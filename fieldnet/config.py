"""Field network configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Field network settings loaded from environment variables."""

    # Controller connection
    unifi_address: str = "10.0.100.2:8443"
    unifi_username: str = "admin"
    unifi_password: str = ""
    unifi_verify_tls: bool = False

    # Pre-provisioned controller resources, one network and one wlan per slot
    red1_network_id: str = ""
    red2_network_id: str = ""
    red3_network_id: str = ""
    blue1_network_id: str = ""
    blue2_network_id: str = ""
    blue3_network_id: str = ""
    red1_wifi_id: str = ""
    red2_wifi_id: str = ""
    red3_wifi_id: str = ""
    blue1_wifi_id: str = ""
    blue2_wifi_id: str = ""
    blue3_wifi_id: str = ""

    wifi_passphrase: str = "bluegold"

    # Communication timeouts (seconds)
    connect_timeout: float = 1.0
    command_timeout: float = 5.0

    # Reconciliation loop
    poll_interval: float = 3.0  # seconds between drift-detection reads
    config_retry_interval: float = 5.0  # wait before reading a write back
    request_buffer_size: int = 10
    max_config_attempts: int | None = Field(None, ge=1)  # None retries forever

    # Address the driver stations connect to
    server_ip_address: str = "10.0.100.5"

    # Service
    service_host: str = "0.0.0.0"
    service_port: int = 8254

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "FIELDNET_"


settings = Settings()
