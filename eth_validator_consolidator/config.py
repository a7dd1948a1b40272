from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

import logging
import json
import yaml

from .errors import UnsupportedNetworkError
from .utils import (
    CONSOLIDATION_CONTRACT_ADDRESS,
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE_MULTIPLIER_PCT,
    DEFAULT_RATE_LIMIT_BACKOFF_SEC,
    NETWORK_HOODI,
    NETWORK_MAINNET,
    SUPPORTED_NETWORKS,
)


BEACONCHAIN_API_URLS = {
    NETWORK_MAINNET: 'https://beaconcha.in/api/v1',
    NETWORK_HOODI: 'https://hoodi.beaconcha.in/api/v1',
}

BEACON_SPEC_URLS = {
    NETWORK_MAINNET: 'https://ethereum-beacon-api.publicnode.com/eth/v1/config/spec',
    NETWORK_HOODI: 'https://ethereum-hoodi-beacon-api.publicnode.com/eth/v1/config/spec',
}


class NetworkConfig(BaseModel):
    """Static per-network configuration.

    Args:
        None

    Returns:
        None
    """
    name: str
    rpc_url: Optional[str] = None
    consolidation_contract_address: str
    beaconchain_api_url: str
    beacon_spec_url: str


class Config(BaseSettings):
    """Configuration model for the validator consolidator.

    Args:
        None

    Returns:
        None
    """
    model_config = SettingsConfigDict(case_sensitive=True, env_prefix='eth_consolidator_')

    beaconchain_api_key: Optional[str] = None
    beaconchain_timeout_sec: Optional[int] = None

    rate_limit_per_second: Optional[int] = None
    rate_limit_per_minute: Optional[int] = None
    rate_limit_backoff_sec: Optional[float] = None
    rate_limit_max_retries: Optional[int] = None

    rpc_url_mainnet: Optional[str] = None
    rpc_url_hoodi: Optional[str] = None
    consolidation_contract_mainnet: Optional[str] = None
    consolidation_contract_hoodi: Optional[str] = None

    gas_limit: Optional[int] = None
    gas_price_multiplier_pct: Optional[int] = None

    def get_network(self, network: str) -> NetworkConfig:
        """Get the configuration of a supported network.

        Args:
            network: str
                Network name, case insensitive.

        Returns:
            NetworkConfig
                The network configuration.

        Raises:
            UnsupportedNetworkError: If the network is not mainnet or hoodi.
        """
        name = network.lower()
        if name not in SUPPORTED_NETWORKS:
            raise UnsupportedNetworkError(
                f'Invalid network: {network}. Supported networks: {", ".join(SUPPORTED_NETWORKS)}'
            )

        return NetworkConfig(
            name=name,
            rpc_url=getattr(self, f'rpc_url_{name}'),
            consolidation_contract_address=getattr(self, f'consolidation_contract_{name}') or CONSOLIDATION_CONTRACT_ADDRESS,
            beaconchain_api_url=BEACONCHAIN_API_URLS[name],
            beacon_spec_url=BEACON_SPEC_URLS[name],
        )

    def get_networks(self) -> dict[str, NetworkConfig]:
        return {name: self.get_network(name) for name in SUPPORTED_NETWORKS}


def _default_config() -> Config:
    """Create and return the default configuration.

    Args:
        None

    Returns:
        Config
            The default configuration instance.
    """
    return Config(
        beaconchain_timeout_sec=30,
        rate_limit_per_second=2,
        rate_limit_per_minute=100,
        rate_limit_backoff_sec=DEFAULT_RATE_LIMIT_BACKOFF_SEC,
        consolidation_contract_mainnet=CONSOLIDATION_CONTRACT_ADDRESS,
        consolidation_contract_hoodi=CONSOLIDATION_CONTRACT_ADDRESS,
        gas_limit=DEFAULT_GAS_LIMIT,
        gas_price_multiplier_pct=DEFAULT_GAS_PRICE_MULTIPLIER_PCT,
    )


def load_config(config_file: Optional[str] = None) -> Config:
    """Load and merge configuration from environment variables and config file.

    Environment variables have priority and can be used to set secrets
    (i.e: the beaconcha.in API key) and override the config file values.

    Args:
        config_file: Optional[str]
            Path to the YAML or JSON configuration file, if any.

    Returns:
        Config
            The effective configuration.
    """
    config = dict()

    if config_file is not None:
        with open(config_file, 'r') as fh:
            logging.info(f'⚙️ Parsing configuration file {config_file}')

            if str(config_file).endswith('.json'):
                config = json.load(fh)
            else:
                config = yaml.safe_load(fh) or dict()

    logging.info('⚙️ Validating configuration')
    from_default = _default_config().model_dump()
    from_env = Config().model_dump()
    from_file = Config(**config).model_dump()

    logging.info('⚙️ Merging with environment variables')
    merged = from_default.copy()

    merged.update({k: v for k, v in from_file.items() if v is not None})
    merged.update({k: v for k, v in from_env.items() if v is not None})

    r = Config(**merged)

    logging.info('⚙️ Configuration is ready')

    return r
