"""Pydantic models for validator data, RPC exchanges and consolidation payloads."""

from enum import StrEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ValidatorStatus(StrEnum):
    """Validator status as reported by the beaconcha.in API.

    Args:
        None

    Returns:
        None
    """
    pending = "pending"
    deposited = "deposited"
    exitingOnline = "exiting_online"
    exitingOffline = "exiting_offline"
    activeOnline = "active_online"
    activeOffline = "active_offline"
    exited = "exited"
    slashed = "slashed"
    slashingOnline = "slashing_online"
    slashingOffline = "slashing_offline"


class CredentialType(StrEnum):
    """Tag stored in byte 0 of the withdrawal credentials.

    NONE is used when the tag is unknown or the credentials can not be
    decoded.

    Args:
        None

    Returns:
        None
    """
    NONE = ""
    BLS = "00"
    EXECUTION = "01"
    COMPOUNDING = "02"


class Network(StrEnum):
    MAINNET = "mainnet"
    HOODI = "hoodi"


class ValidatorRecord(BaseModel):
    """One beacon chain validator as returned by `POST /validator`.

    Args:
        None

    Returns:
        None
    """
    model_config = ConfigDict(populate_by_name=True)

    index: int = Field(alias="validatorindex")
    pubkey: str
    withdrawal_credentials: str = Field(alias="withdrawalcredentials")
    activation_epoch: Optional[int] = Field(default=None, alias="activationepoch")
    balance: int = 0
    status: ValidatorStatus


class ValidatorsResponse(BaseModel):
    """Envelope of `POST /validator`, a single object for a single key.

    Args:
        None

    Returns:
        None
    """
    status: Optional[str] = None
    data: Union[list[ValidatorRecord], ValidatorRecord, None] = None

    def records(self) -> list[ValidatorRecord]:
        if self.data is None:
            return []
        if isinstance(self.data, ValidatorRecord):
            return [self.data]
        return self.data


class WithdrawalCredentialsResponse(BaseModel):
    """Envelope of `GET /validator/withdrawalCredentials/{x}`.

    Args:
        None

    Returns:
        None
    """
    class Data(BaseModel):
        publickey: str
        validatorindex: int

    status: Optional[str] = None
    data: Optional[list[Data]] = None


class EpochResponse(BaseModel):
    """Envelope of `GET /epoch/latest`.

    Args:
        None

    Returns:
        None
    """
    class Data(BaseModel):
        epoch: int

    data: Data


class Spec(BaseModel):
    """Subset of the beacon node `/eth/v1/config/spec` answer.

    Args:
        None

    Returns:
        None
    """
    class Data(BaseModel):
        SHARD_COMMITTEE_PERIOD: int

    data: Data


class JsonRpcRequest(BaseModel):
    jsonrpc: str = "2.0"
    method: str
    params: list[Any] = []
    id: int = 1


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 answer from the execution node.

    Args:
        None

    Returns:
        None
    """
    class Error(BaseModel):
        code: int
        message: str

    jsonrpc: str = "2.0"
    id: Optional[Union[int, str]] = None
    result: Optional[str] = None
    error: Optional[Error] = None


class InvalidValidator(BaseModel):
    """Why a validator can not take part in a consolidation.

    Args:
        None

    Returns:
        None
    """
    pubkey: str
    reason: str
    details: dict[str, Any] = {}


class ValidationOutcome(BaseModel):
    """Result of the consolidation eligibility evaluation.

    Args:
        None

    Returns:
        None
    """
    valid: bool
    error: Optional[str] = None
    invalid_validators: list[InvalidValidator] = []
    validators: list[ValidatorRecord] = []


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionPayload(_CamelModel):
    """Unsigned transaction handed over to an external signer.

    Every numeric field is 0x-prefixed hex.

    Args:
        None

    Returns:
        None
    """
    sender: str
    from_: str = Field(alias="from")
    to: str
    value: str
    gas: str
    gas_price: str
    data: str
    chain_id: str


class ConsolidationPayload(_CamelModel):
    """A transaction payload along with what it does.

    Args:
        None

    Returns:
        None
    """
    payload: TransactionPayload
    is_conversion_tx: bool
    is_self_consolidation: Optional[bool] = None
    description: str
    source_pubkey: Optional[str] = None
    target_pubkey: Optional[str] = None


class ConsolidationRequest(_CamelModel):
    target_pubkey: str
    source_pubkeys: list[str] = Field(min_length=1)
    sender: str
    network: Network


class ConsolidationResponse(_CamelModel):
    """What the consolidation facade hands back to its caller.

    Args:
        None

    Returns:
        None
    """
    success: bool
    error: Optional[str] = None
    details: list[InvalidValidator] = []
    target_pubkey: Optional[str] = None
    source_pubkeys_count: Optional[int] = None
    sender: Optional[str] = None
    payloads: list[ConsolidationPayload] = []


class ValidatorSummary(_CamelModel):
    """Validator row returned by the listing operation.

    Args:
        None

    Returns:
        None
    """
    index: int
    pubkey: str
    balance: int
    credtype: str
    status: str
    is_consolidable: bool
