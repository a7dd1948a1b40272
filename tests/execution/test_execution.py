from pytest import raises
from requests_mock import Mocker

from eth_validator_consolidator.errors import ExecutionError
from eth_validator_consolidator.execution import Execution
from tests.factories import CONTRACT, EXECUTION_URL


def rpc(result: str) -> dict:
    return dict(jsonrpc="2.0", id=1, result=result)


def test_eth_get_storage_at() -> None:
    execution = Execution(EXECUTION_URL)

    def match_request(request) -> bool:
        body = request.json()
        return body["method"] == "eth_getStorageAt" and body["params"] == [CONTRACT, "0x00", "latest"]

    with Mocker() as mock:
        mock.post(EXECUTION_URL, additional_matcher=match_request, json=rpc("0x" + "00" * 31 + "05"))
        assert execution.eth_get_storage_at(CONTRACT, "0x00") == "0x" + "00" * 31 + "05"


def test_eth_gas_price_and_chain_id() -> None:
    execution = Execution(EXECUTION_URL)

    def answer(request, context):
        method = request.json()["method"]
        return rpc({"eth_gasPrice": "0x3b9aca00", "eth_chainId": "0x88bb0"}[method])

    with Mocker() as mock:
        mock.post(EXECUTION_URL, json=answer)
        assert execution.eth_gas_price() == 1_000_000_000
        assert execution.eth_chain_id() == 560048

    assert [r.json()["jsonrpc"] for r in mock.request_history] == ["2.0", "2.0"]
    assert mock.request_history[0].json()["id"] != mock.request_history[1].json()["id"]


def test_eth_get_balance_and_block_number() -> None:
    execution = Execution(EXECUTION_URL)

    with Mocker() as mock:
        mock.post(EXECUTION_URL, [{"json": rpc("0xde0b6b3a7640000")}, {"json": rpc("0x10")}])
        assert execution.eth_get_balance("0x5fdcb78ca9a1164c13428e5fc9582c8c48dab69f") == 10**18
        assert execution.eth_block_number() == 16


def test_rpc_error() -> None:
    execution = Execution(EXECUTION_URL)

    with Mocker() as mock:
        mock.post(EXECUTION_URL, json=dict(jsonrpc="2.0", id=1, error=dict(code=-32000, message="header not found")))
        with raises(ExecutionError, match="header not found"):
            execution.eth_gas_price()


def test_http_error() -> None:
    execution = Execution(EXECUTION_URL)

    with Mocker() as mock:
        mock.post(EXECUTION_URL, status_code=500)
        with raises(ExecutionError):
            execution.eth_chain_id()
