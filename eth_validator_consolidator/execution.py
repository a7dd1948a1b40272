"""Contains the Execution class which is used to interact with the execution layer node."""

from typing import Any

from pydantic import ValidationError
from requests import RequestException, Session, codes
from requests.adapters import HTTPAdapter, Retry

from .errors import ExecutionError
from .models import JsonRpcRequest, JsonRpcResponse


class Execution:
    """Execution node abstraction, read-only JSON-RPC calls."""

    def __init__(self, url: str, timeout_sec: int = 30) -> None:
        """Execution node

        url: URL where the execution node can be reached
        timeout_sec: timeout in seconds of each call
        """
        self.__url = url
        self.__timeout_sec = timeout_sec
        self.__http = Session()
        self.__id = 0

        adapter = HTTPAdapter(
            max_retries=Retry(
                backoff_factor=0.5,
                total=3,
                status_forcelist=[codes.bad_gateway, codes.service_unavailable],
                allowed_methods=None,
            )
        )

        self.__http.mount("http://", adapter)
        self.__http.mount("https://", adapter)

    def get_url(self) -> str:
        return self.__url

    def __call(self, method: str, *params: Any) -> str:
        self.__id += 1
        request_body = JsonRpcRequest(method=method, params=list(params), id=self.__id)

        try:
            response = self.__http.post(self.__url, json=request_body.model_dump(), timeout=self.__timeout_sec)
            response.raise_for_status()
            rpc_response = JsonRpcResponse.model_validate_json(response.text)
        except (RequestException, ValidationError) as e:
            raise ExecutionError(f'{method} failed: {e}') from e

        if rpc_response.error is not None:
            raise ExecutionError(f'{method} failed: {rpc_response.error.message} (code {rpc_response.error.code})')

        if rpc_response.result is None:
            raise ExecutionError(f'{method} returned no result')

        return rpc_response.result

    def eth_get_storage_at(self, address: str, slot: str, block: str = "latest") -> str:
        """Read a raw storage slot.

        Parameters:
        address: Contract address
        slot: Hex encoded slot position
        block: Block tag or number

        Returns the 32 bytes hex encoded value.
        """
        return self.__call("eth_getStorageAt", address, slot, block)

    def eth_gas_price(self) -> int:
        """Current gas price, in wei."""
        return int(self.__call("eth_gasPrice"), 16)

    def eth_chain_id(self) -> int:
        return int(self.__call("eth_chainId"), 16)

    def eth_get_balance(self, address: str, block: str = "latest") -> int:
        """Balance of an address, in wei."""
        return int(self.__call("eth_getBalance", address, block), 16)

    def eth_block_number(self) -> int:
        return int(self.__call("eth_blockNumber"), 16)
