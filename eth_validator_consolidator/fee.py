"""EIP-7251 consolidation request fee."""

import logging

from .errors import ExecutionError
from .execution import Execution


# https://eips.ethereum.org/EIPS/eip-7251#fee-calculation
MIN_CONSOLIDATION_REQUEST_FEE = 1
CONSOLIDATION_REQUEST_FEE_UPDATE_FRACTION = 17

# Storage slot of the excess consolidation requests counter.
EXCESS_CONSOLIDATION_REQUESTS_STORAGE_SLOT = "0x00"

# Written by the contract before the fork activates.
EXCESS_INHIBITOR = 2**256 - 1


def fake_exponential(factor: int, numerator: int, denominator: int) -> int:
    """Integer approximation of factor * e ** (numerator / denominator).

    Args:
        factor: int
            Multiplier.
        numerator: int
            Exponent numerator.
        denominator: int
            Exponent denominator.

    Returns:
        int
            The approximation, rounded down.
    """
    i = 1
    output = 0
    numerator_accum = factor * denominator
    while numerator_accum > 0:
        output += numerator_accum
        numerator_accum = (numerator_accum * numerator) // (denominator * i)
        i += 1
    return output // denominator


def get_required_fee(queue_length: int) -> int:
    """Fee in wei to pay for one consolidation request.

    Args:
        queue_length: int
            Excess consolidation requests, as stored by the contract.

    Returns:
        int
            The fee in wei.

    Raises:
        ValueError: If queue_length is negative.
    """
    if queue_length < 0:
        raise ValueError(f'queue length can not be negative, got {queue_length}')
    return fake_exponential(MIN_CONSOLIDATION_REQUEST_FEE, queue_length, CONSOLIDATION_REQUEST_FEE_UPDATE_FRACTION)


def get_consolidation_fee(execution: Execution, contract_address: str) -> int:
    """Read the consolidation queue from the contract and derive the fee.

    A failed read is logged and yields a zero fee.

    Args:
        execution: Execution
            Execution node of the network.
        contract_address: str
            Address of the consolidation contract.

    Returns:
        int
            The fee in wei.
    """
    try:
        raw = execution.eth_get_storage_at(contract_address, EXCESS_CONSOLIDATION_REQUESTS_STORAGE_SLOT)
        queue_length = int(raw, 16)
    except (ExecutionError, ValueError) as e:
        logging.error(f'❌ Unable to read consolidation queue length, using a zero fee: {e}')
        return 0

    logging.info(f'💸 Consolidation queue length: {queue_length}')

    if queue_length == EXCESS_INHIBITOR:
        logging.warning('⚠️ Consolidation queue is not initialized, using a zero fee')
        return 0

    return get_required_fee(queue_length)
