"""Construction of the unsigned consolidation transactions."""

import logging

from typing import Mapping, Sequence

from .beaconchain import Beaconchain
from .credentials import validate_address, validate_pubkey
from .eligibility import ConsolidationEligibility, normalized_pubkey
from .errors import ConsolidatorError, PayloadBuildError, UnsupportedNetworkError
from .execution import Execution
from .fee import get_consolidation_fee
from .models import ConsolidationPayload, CredentialType, TransactionPayload
from .utils import (
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE_MULTIPLIER_PCT,
    remove_0x_prefix,
)


SELF_CONSOLIDATION_DESCRIPTION = 'Self-consolidation: conversion from execution (01) to compounding (02) credentials'
CONVERSION_DESCRIPTION = 'Conversion transaction to change target validator credential type to 02'
CONSOLIDATION_DESCRIPTION = 'Consolidation transaction for single validator'


def consolidation_call_data(source_pubkey: str, target_pubkey: str) -> str:
    """Call data of a consolidation request: source pubkey then target pubkey.

    Args:
        source_pubkey: str
            Source validator public key.
        target_pubkey: str
            Target validator public key, equal to the source for a
            credential conversion.

    Returns:
        str
            0x-prefixed 96 bytes hex string.
    """
    source = remove_0x_prefix(validate_pubkey(source_pubkey))
    target = remove_0x_prefix(validate_pubkey(target_pubkey))
    return f'0x{source}{target}'


class PayloadBuilder:
    """Builds the ordered list of transactions performing a consolidation.

    Regular consolidations do not re-run the eligibility rules, callers
    are expected to have evaluated them beforehand (the Consolidator
    facade does). Self-consolidations are always evaluated here.
    """

    def __init__(
        self,
        beaconchain: Beaconchain,
        eligibility: ConsolidationEligibility,
        executions: Mapping[str, Execution],
        contract_addresses: Mapping[str, str],
        gas_limit: int = DEFAULT_GAS_LIMIT,
        gas_price_multiplier_pct: int = DEFAULT_GAS_PRICE_MULTIPLIER_PCT,
    ) -> None:
        """Initialize a PayloadBuilder.

        Args:
            beaconchain: Beaconchain
                Used to read the target credential type.
            eligibility: ConsolidationEligibility
                Used to evaluate self-consolidations.
            executions: Mapping[str, Execution]
                Execution node per network.
            contract_addresses: Mapping[str, str]
                Consolidation contract address per network.
            gas_limit: int
                Gas limit of every transaction.
            gas_price_multiplier_pct: int
                Percentage applied to the node gas price.

        Returns:
            None
        """
        self._beaconchain = beaconchain
        self._eligibility = eligibility
        self._executions = dict(executions)
        self._contract_addresses = dict(contract_addresses)
        self._gas_limit = gas_limit
        self._gas_price_multiplier_pct = gas_price_multiplier_pct

    def _get_execution(self, network: str) -> Execution:
        try:
            return self._executions[network]
        except KeyError:
            raise UnsupportedNetworkError(f'No execution node configured for network: {network}') from None

    def _get_contract_address(self, network: str) -> str:
        try:
            return self._contract_addresses[network]
        except KeyError:
            raise UnsupportedNetworkError(f'No consolidation contract configured for network: {network}') from None

    def build_transaction(self, data: str, sender: str, network: str, value: int) -> TransactionPayload:
        """Build one unsigned transaction to the consolidation contract.

        Gas price and chain id are read from the node for every
        transaction, the multiplier is applied with half-up rounding.

        Args:
            data: str
                Call data.
            sender: str
                Address sending the transaction.
            network: str
                Network name.
            value: int
                Value in wei, the consolidation fee.

        Returns:
            TransactionPayload
                The transaction, numeric fields hex encoded.
        """
        execution = self._get_execution(network)
        chain_id = execution.eth_chain_id()
        gas_price = execution.eth_gas_price()
        gas_price_fast = (gas_price * self._gas_price_multiplier_pct + 50) // 100

        return TransactionPayload(
            sender=sender,
            from_=sender,
            to=self._get_contract_address(network),
            value=hex(value),
            gas=hex(self._gas_limit),
            gas_price=hex(gas_price_fast),
            data=data,
            chain_id=hex(chain_id),
        )

    def build_payloads(
        self,
        target_pubkey: str,
        source_pubkeys: Sequence[str],
        sender: str,
        network: str,
    ) -> list[ConsolidationPayload]:
        """Build the transactions consolidating sources into the target.

        Args:
            target_pubkey: str
                Target validator public key.
            source_pubkeys: Sequence[str]
                Source validator public keys, payloads follow this order.
            sender: str
                Address sending the transactions.
            network: str
                Network name.

        Returns:
            list[ConsolidationPayload]
                Optional conversion transaction first, then one
                transaction per source.

        Raises:
            PayloadBuildError: If any step fails, nothing is returned.
        """
        try:
            return self._build_payloads(target_pubkey, source_pubkeys, sender, network)
        except (ConsolidatorError, ValueError) as e:
            logging.error(f'❌ Failed to generate consolidation payloads: {e}')
            raise PayloadBuildError(f'Failed to generate consolidation payloads: {e}') from e

    def _build_payloads(
        self,
        target_pubkey: str,
        source_pubkeys: Sequence[str],
        sender: str,
        network: str,
    ) -> list[ConsolidationPayload]:
        if not source_pubkeys:
            raise ValueError('At least one source validator is required')

        sender = validate_address(sender)
        fee = get_consolidation_fee(self._get_execution(network), self._get_contract_address(network))
        logging.info(f'💸 Consolidation fee: {fee} wei')

        if len(source_pubkeys) == 1 and normalized_pubkey(source_pubkeys[0]) == normalized_pubkey(target_pubkey):
            return [self._build_self_consolidation(target_pubkey, sender, network, fee)]

        target_cred_type = self._beaconchain.get_credential_type(target_pubkey, network)
        logging.info(f'🔎 Target validator credential type: {target_cred_type or "unknown"}')

        payloads: list[ConsolidationPayload] = []

        if target_cred_type != CredentialType.NONE and target_cred_type != CredentialType.COMPOUNDING:
            logging.info(f'🔁 Target validator has credential type {target_cred_type}, adding a conversion to type 02')
            payloads.append(ConsolidationPayload(
                payload=self.build_transaction(consolidation_call_data(target_pubkey, target_pubkey), sender, network, fee),
                is_conversion_tx=True,
                description=CONVERSION_DESCRIPTION,
                source_pubkey=target_pubkey,
                target_pubkey=target_pubkey,
            ))

        for source_pubkey in source_pubkeys:
            payloads.append(ConsolidationPayload(
                payload=self.build_transaction(consolidation_call_data(source_pubkey, target_pubkey), sender, network, fee),
                is_conversion_tx=False,
                description=CONSOLIDATION_DESCRIPTION,
                source_pubkey=source_pubkey,
                target_pubkey=target_pubkey,
            ))

        return payloads

    def _build_self_consolidation(self, pubkey: str, sender: str, network: str, fee: int) -> ConsolidationPayload:
        logging.info('🔁 Self-consolidation detected, checking for credential conversion need')

        validation = self._eligibility.evaluate(pubkey, [pubkey], sender, network)
        if not validation.valid:
            raise PayloadBuildError(f'Validator validation failed: {validation.error}')

        cred_type = self._beaconchain.get_credential_type(pubkey, network)
        if cred_type == CredentialType.NONE:
            raise PayloadBuildError(f'Cannot determine credential type for validator {pubkey}')

        if cred_type != CredentialType.EXECUTION:
            raise PayloadBuildError(
                f'Self-consolidation is only allowed for validators with credential type 01. '
                f'Validator {pubkey} has credential type {cred_type}'
            )

        return ConsolidationPayload(
            payload=self.build_transaction(consolidation_call_data(pubkey, pubkey), sender, network, fee),
            is_conversion_tx=True,
            is_self_consolidation=True,
            description=SELF_CONSOLIDATION_DESCRIPTION,
            source_pubkey=pubkey,
            target_pubkey=pubkey,
        )
