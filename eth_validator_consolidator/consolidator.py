"""Entry point used by callers: listing validators and preparing consolidations."""

import logging

from typing import Mapping

from .beaconchain import Beaconchain
from .chain_params import ChainParameters
from .config import Config, NetworkConfig
from .credentials import credential_type, validate_address, validate_pubkey
from .eligibility import ConsolidationEligibility, is_consolidable
from .errors import UnsupportedNetworkError
from .execution import Execution
from .models import (
    ConsolidationRequest,
    ConsolidationResponse,
    ValidatorSummary,
)
from .payloads import PayloadBuilder
from .rate_limiter import RateLimiter
from .utils import RetryPolicy


class Consolidator:
    """Wires the data clients, the eligibility rules and the payload builder.

    Instances own their collaborators: build one per process and share
    it, the rate limiter and the shard committee period cache live in it.
    """

    def __init__(
        self,
        networks: Mapping[str, NetworkConfig],
        beaconchain: Beaconchain,
        chain_parameters: ChainParameters,
        eligibility: ConsolidationEligibility,
        builder: PayloadBuilder,
        executions: Mapping[str, Execution],
    ) -> None:
        self._networks = dict(networks)
        self._beaconchain = beaconchain
        self._chain_parameters = chain_parameters
        self._eligibility = eligibility
        self._builder = builder
        self._executions = dict(executions)

    @classmethod
    def from_config(cls, cfg: Config) -> 'Consolidator':
        """Build a Consolidator and its collaborators from a configuration.

        Args:
            cfg: Config
                Effective configuration.

        Returns:
            Consolidator
                A ready to use instance.
        """
        networks = cfg.get_networks()

        rate_limiter = RateLimiter(cfg.rate_limit_per_second, cfg.rate_limit_per_minute)
        retry_policy = RetryPolicy(
            backoff_sec=cfg.rate_limit_backoff_sec,
            max_attempts=cfg.rate_limit_max_retries,
        )

        beaconchain = Beaconchain(
            {name: network.beaconchain_api_url for name, network in networks.items()},
            rate_limiter,
            api_key=cfg.beaconchain_api_key,
            timeout_sec=cfg.beaconchain_timeout_sec,
            retry_policy=retry_policy,
        )
        chain_parameters = ChainParameters(
            beaconchain,
            {name: network.beacon_spec_url for name, network in networks.items()},
            timeout_sec=cfg.beaconchain_timeout_sec,
        )

        executions = {}
        for name, network in networks.items():
            if network.rpc_url:
                executions[name] = Execution(network.rpc_url)
                logging.info(f'🔌 Execution node for {name}: {network.rpc_url}')

        eligibility = ConsolidationEligibility(beaconchain, chain_parameters)
        builder = PayloadBuilder(
            beaconchain,
            eligibility,
            executions,
            {name: network.consolidation_contract_address for name, network in networks.items()},
            gas_limit=cfg.gas_limit,
            gas_price_multiplier_pct=cfg.gas_price_multiplier_pct,
        )

        return cls(networks, beaconchain, chain_parameters, eligibility, builder, executions)

    def _check_network(self, network: str) -> str:
        name = network.lower()
        if name not in self._networks:
            raise UnsupportedNetworkError(
                f'Invalid network: {network}. Supported networks: {", ".join(self._networks)}'
            )
        return name

    def _get_execution(self, network: str) -> Execution:
        name = self._check_network(network)
        if name not in self._executions:
            raise UnsupportedNetworkError(f'No execution node configured for network: {name}')
        return self._executions[name]

    def list_validators(self, withdrawal_credentials: str, network: str) -> list[ValidatorSummary]:
        """List the validators using some withdrawal credentials or address.

        Args:
            withdrawal_credentials: str
                Withdrawal credentials or execution address.
            network: str
                Network name.

        Returns:
            list[ValidatorSummary]
                One entry per validator, in the order returned by the API.
        """
        network = self._check_network(network)
        if not withdrawal_credentials:
            raise ValueError('Withdrawal credentials must be provided')

        logging.info(f'📋 Fetching validators for withdrawal credentials {withdrawal_credentials} on {network}')

        shard_committee_period = self._chain_parameters.shard_committee_period(network)
        current_epoch = self._chain_parameters.current_epoch(network)
        logging.info(f'📋 Current epoch {current_epoch}, SHARD_COMMITTEE_PERIOD {shard_committee_period}')

        listed = self._beaconchain.get_validators_by_withdrawal_credentials(withdrawal_credentials, network)
        logging.info(f'📋 Found {len(listed)} validators')

        details = self._beaconchain.get_validators([v.validatorindex for v in listed], network)
        by_index = {record.index: record for record in details}
        logging.info(f'📋 Retrieved details for {len(details)} validators')

        summaries = []
        for validator in listed:
            record = by_index.get(validator.validatorindex)

            if record is None:
                summaries.append(ValidatorSummary(
                    index=validator.validatorindex,
                    pubkey=validator.publickey,
                    balance=0,
                    credtype='',
                    status='unknown',
                    is_consolidable=False,
                ))
                continue

            cred_type = credential_type(record.withdrawal_credentials)
            summaries.append(ValidatorSummary(
                index=validator.validatorindex,
                pubkey=validator.publickey,
                balance=record.balance,
                credtype=str(cred_type),
                status=str(record.status),
                is_consolidable=is_consolidable(
                    cred_type, record.activation_epoch, shard_committee_period, current_epoch, record.status
                ),
            ))

        return summaries

    def consolidate(self, request: ConsolidationRequest) -> ConsolidationResponse:
        """Evaluate a consolidation and, if eligible, build its payloads.

        Args:
            request: ConsolidationRequest
                Target, sources, sender and network.

        Returns:
            ConsolidationResponse
                Payloads on success, itemized reasons otherwise.

        Raises:
            ValueError: On malformed pubkeys or sender address.
            PayloadBuildError: If payloads can not be built.
        """
        network = self._check_network(request.network)
        sender = validate_address(request.sender)
        validate_pubkey(request.target_pubkey)
        for pubkey in request.source_pubkeys:
            validate_pubkey(pubkey)

        outcome = self._eligibility.evaluate(request.target_pubkey, request.source_pubkeys, sender, network)
        if not outcome.valid:
            logging.warning(f'🚫 Consolidation validation failed: {outcome.error}')
            return ConsolidationResponse(
                success=False,
                error=outcome.error,
                details=outcome.invalid_validators,
            )

        logging.info(f'🛠️ Generating consolidation payloads for {len(request.source_pubkeys)} source(s) on {network}')
        payloads = self._builder.build_payloads(request.target_pubkey, request.source_pubkeys, sender, network)

        return ConsolidationResponse(
            success=True,
            target_pubkey=request.target_pubkey,
            source_pubkeys_count=len(request.source_pubkeys),
            sender=sender,
            payloads=payloads,
        )

    def get_balance(self, address: str, network: str) -> int:
        """Balance of an address in wei."""
        return self._get_execution(network).eth_get_balance(validate_address(address))

    def get_block_number(self, network: str) -> int:
        return self._get_execution(network).eth_block_number()
