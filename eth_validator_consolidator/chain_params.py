"""Resolution of the protocol parameters needed by the eligibility rules."""

import logging

from typing import Mapping

from pydantic import ValidationError
from requests import RequestException, Session

from .beaconchain import Beaconchain
from .errors import ConsolidatorError, UnsupportedNetworkError
from .models import Spec
from .utils import DEFAULT_SHARD_COMMITTEE_PERIOD


class ChainParameters:
    """Current epoch and shard committee period per network.

    The shard committee period is a protocol constant: it is fetched
    once per network from a beacon node spec endpoint and kept for the
    lifetime of the instance, including when the fallback is used.
    """

    def __init__(self, beaconchain: Beaconchain, spec_urls: Mapping[str, str], timeout_sec: int = 30) -> None:
        """Initialize ChainParameters.

        Args:
            beaconchain: Beaconchain
                Rate limited client used for the current epoch.
            spec_urls: Mapping[str, str]
                Full URL of /eth/v1/config/spec per network.
            timeout_sec: int
                Timeout in seconds used to query the spec endpoint.

        Returns:
            None
        """
        self._beaconchain = beaconchain
        self._spec_urls = dict(spec_urls)
        self._timeout_sec = timeout_sec
        self._http = Session()
        self._shard_committee_period: dict[str, int] = {}

    def current_epoch(self, network: str) -> int:
        """Get the current epoch.

        There is no safe default for this value, failures propagate.

        Args:
            network: str
                Network name.

        Returns:
            int
                The current epoch.
        """
        try:
            return self._beaconchain.get_latest_epoch(network)
        except ConsolidatorError as e:
            logging.error(f'❌ Failed to fetch current epoch for {network}: {e}')
            raise

    def shard_committee_period(self, network: str) -> int:
        """Get SHARD_COMMITTEE_PERIOD, falling back to 256 on any failure.

        Args:
            network: str
                Network name.

        Returns:
            int
                Number of epochs a validator must be active before exiting or consolidating.
        """
        if network in self._shard_committee_period:
            return self._shard_committee_period[network]

        if network not in self._spec_urls:
            raise UnsupportedNetworkError(f'Unsupported network: {network}')

        try:
            response = self._http.get(self._spec_urls[network], timeout=self._timeout_sec)
            response.raise_for_status()
            period = Spec.model_validate_json(response.text).data.SHARD_COMMITTEE_PERIOD
            logging.info(f'⚙️ Fetched SHARD_COMMITTEE_PERIOD for {network}: {period}')
        except (RequestException, ValidationError) as e:
            period = DEFAULT_SHARD_COMMITTEE_PERIOD
            logging.warning(f'⚠️ Failed to fetch SHARD_COMMITTEE_PERIOD for {network} ({e}), using default value {period}')

        self._shard_committee_period[network] = period
        return period
