#!/usr/bin/env python3
"""Aggregate configuration for the marketplace core"""
import os
from dataclasses import dataclass, field

from .checkout_config import CheckoutConfig
from .infra_config import InfraConfig
from .logging_config import LoggingConfig

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class MarketConfig:
    """Top-level settings object"""
    service_name: str = "checkout_service"
    service_port: int = 8260
    environment: str = "development"
    internal_service_secret: str = "dev-internal-secret-change-in-production"

    infra: InfraConfig = field(default_factory=InfraConfig)
    checkout: CheckoutConfig = field(default_factory=CheckoutConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'MarketConfig':
        """Load all configuration from environment variables"""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "checkout_service"),
            service_port=_int(os.getenv("PORT", "8260"), 8260),
            environment=os.getenv("ENV") or os.getenv("ENVIRONMENT", "development"),
            internal_service_secret=os.getenv(
                "INTERNAL_SERVICE_SECRET",
                "dev-internal-secret-change-in-production"
            ),
            infra=InfraConfig.from_env(),
            checkout=CheckoutConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )
