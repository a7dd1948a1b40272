"""Consolidation eligibility rules."""

import logging

from typing import Optional, Sequence

from .beaconchain import Beaconchain
from .chain_params import ChainParameters
from .credentials import credential_type, extract_withdrawal_address
from .errors import MalformedResponseError, RateLimitedError, UpstreamError
from .models import (
    CredentialType,
    InvalidValidator,
    ValidationOutcome,
    ValidatorStatus,
)
from .utils import remove_0x_prefix


CONSOLIDABLE_CREDENTIAL_TYPES = frozenset({CredentialType.EXECUTION, CredentialType.COMPOUNDING})

CONSOLIDABLE_STATUSES = frozenset({
    ValidatorStatus.activeOnline,
    ValidatorStatus.activeOffline,
    ValidatorStatus.deposited,
})


def normalized_pubkey(pubkey: str) -> str:
    """Lower-case a public key and make sure it is 0x-prefixed."""
    return '0x' + remove_0x_prefix(pubkey).lower()


def is_consolidable(
    cred_type: CredentialType,
    activation_epoch: Optional[int],
    shard_committee_period: int,
    current_epoch: int,
    status: Optional[str],
) -> bool:
    """Whether a validator can be the source or target of a consolidation.

    Args:
        cred_type: CredentialType
            Type tag of the withdrawal credentials.
        activation_epoch: Optional[int]
            Activation epoch, None if the validator never activated.
        shard_committee_period: int
            Minimum number of epochs since activation.
        current_epoch: int
            Current epoch.
        status: Optional[str]
            Validator status.

    Returns:
        bool
            True if the validator is consolidable.
    """
    if cred_type not in CONSOLIDABLE_CREDENTIAL_TYPES:
        return False

    if activation_epoch is None or activation_epoch + shard_committee_period >= current_epoch:
        return False

    return status in CONSOLIDABLE_STATUSES


class ConsolidationEligibility:
    """Checks a set of validators against the consolidation rules."""

    def __init__(self, beaconchain: Beaconchain, chain_parameters: ChainParameters) -> None:
        self._beaconchain = beaconchain
        self._chain_parameters = chain_parameters

    def evaluate(
        self,
        target_pubkey: str,
        source_pubkeys: Sequence[str],
        sender_address: str,
        network: str,
    ) -> ValidationOutcome:
        """Evaluate whether the target and sources can be consolidated.

        Every validator is checked, reasons are accumulated rather than
        stopping at the first failure. Upstream failures are reported as
        an invalid outcome carrying a generic message.

        Args:
            target_pubkey: str
                Target validator public key.
            source_pubkeys: Sequence[str]
                Source validator public keys, may contain the target for
                a self-consolidation.
            sender_address: str
                Address that will send the consolidation requests.
            network: str
                Network name.

        Returns:
            ValidationOutcome
                The outcome, with per-validator reasons on failure.
        """
        logging.info(
            f'🔍 Validating consolidation of {len(source_pubkeys)} validator(s) into {target_pubkey[:10]}, '
            f'sender {sender_address}, network {network}'
        )

        try:
            return self._evaluate(target_pubkey, source_pubkeys, sender_address, network)
        except (UpstreamError, MalformedResponseError, RateLimitedError) as e:
            logging.error(f'❌ Validation error for consolidation on {network}: {e}')
            return ValidationOutcome(
                valid=False,
                error=f'Failed to validate consolidation requirements: {e}',
            )

    def _evaluate(
        self,
        target_pubkey: str,
        source_pubkeys: Sequence[str],
        sender_address: str,
        network: str,
    ) -> ValidationOutcome:
        sender = sender_address.lower()
        target = normalized_pubkey(target_pubkey)
        sources = [normalized_pubkey(pubkey) for pubkey in source_pubkeys]

        unique_pubkeys = list(dict.fromkeys([target, *sources]))
        logging.info(f'🔍 {1 + len(sources)} pubkeys requested, {len(unique_pubkeys)} unique')

        records = self._beaconchain.get_validators(unique_pubkeys, network)
        by_pubkey = {normalized_pubkey(record.pubkey): record for record in records}

        if len(records) != len(unique_pubkeys):
            missing = [pubkey for pubkey in unique_pubkeys if pubkey not in by_pubkey]
            return ValidationOutcome(
                valid=False,
                error=f'Some validators do not exist: {", ".join(missing)}',
            )

        if target not in by_pubkey:
            return ValidationOutcome(valid=False, error=f'Target validator {target_pubkey} not found')

        for source, source_pubkey in zip(sources, source_pubkeys):
            if source not in by_pubkey:
                return ValidationOutcome(valid=False, error=f'Source validator {source_pubkey} not found')

        current_epoch = self._chain_parameters.current_epoch(network)
        shard_committee_period = self._chain_parameters.shard_committee_period(network)

        withdrawal_address: Optional[str] = None
        invalid: list[InvalidValidator] = []

        for record in records:
            cred_type = credential_type(record.withdrawal_credentials)

            if not is_consolidable(cred_type, record.activation_epoch, shard_committee_period, current_epoch, record.status):
                invalid.append(InvalidValidator(
                    pubkey=record.pubkey,
                    reason='Validator is not consolidable',
                    details=dict(
                        credtype=str(cred_type),
                        activationEpoch=record.activation_epoch,
                        currentEpoch=current_epoch,
                        shardCommitteePeriod=shard_committee_period,
                        status=str(record.status),
                    ),
                ))
                continue

            address = extract_withdrawal_address(record.withdrawal_credentials)
            if not address:
                invalid.append(InvalidValidator(
                    pubkey=record.pubkey,
                    reason='Could not extract withdrawal address',
                    details=dict(credentials=record.withdrawal_credentials),
                ))
                continue

            if address != sender:
                invalid.append(InvalidValidator(
                    pubkey=record.pubkey,
                    reason='Withdrawal address does not match sender address',
                    details=dict(withdrawalAddress=address, senderAddress=sender),
                ))
                continue

            if withdrawal_address is None:
                withdrawal_address = address
            elif withdrawal_address != address:
                invalid.append(InvalidValidator(
                    pubkey=record.pubkey,
                    reason='Inconsistent withdrawal address across validators',
                    details=dict(expectedAddress=withdrawal_address, actualAddress=address),
                ))

        if invalid:
            logging.warning(f'🚫 {len(invalid)} validator(s) failed consolidation validation')
            return ValidationOutcome(
                valid=False,
                error='Some validators failed validation',
                invalid_validators=invalid,
            )

        return ValidationOutcome(valid=True, validators=records)
