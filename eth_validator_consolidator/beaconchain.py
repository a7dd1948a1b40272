"""Contains the Beaconchain class which is used to fetch validator data from the beaconcha.in API."""

import logging

from typing import Any, Mapping, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from requests import HTTPError, RequestException, Response, Session, codes
from requests.adapters import HTTPAdapter, Retry
from requests.exceptions import ChunkedEncodingError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from .credentials import credential_type
from .errors import (
    MalformedResponseError,
    RateLimitedError,
    UnsupportedNetworkError,
    UpstreamError,
)
from .models import (
    CredentialType,
    EpochResponse,
    ValidatorRecord,
    ValidatorsResponse,
    WithdrawalCredentialsResponse,
)
from .rate_limiter import RateLimiter
from .utils import RetryPolicy, chunks, remove_0x_prefix


M = TypeVar('M', bound=BaseModel)

# Maximum page size accepted by the withdrawal credentials endpoint.
PAGE_SIZE = 200

# Maximum number of keys accepted by a single POST /validator.
CHUNK_SIZE = 100


class Beaconchain:
    """beaconcha.in API abstraction.

    Every outbound request goes through the shared rate limiter. HTTP
    429 answers are retried according to the retry policy, without
    moving on to the next page or chunk.
    """

    def __init__(
        self,
        urls: Mapping[str, str],
        rate_limiter: RateLimiter,
        api_key: Optional[str] = None,
        timeout_sec: int = 30,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        """Initialize a Beaconchain instance.

        Args:
            urls: Mapping[str, str]
                API base URL (i.e: https://beaconcha.in/api/v1) per network.
            rate_limiter: RateLimiter
                Limiter shared by every client of this API.
            api_key: Optional[str]
                API key sent in the apikey header, if any.
            timeout_sec: int
                Timeout in seconds used to query the API.
            retry_policy: Optional[RetryPolicy]
                How rate limited requests are retried.

        Returns:
            None
        """
        self._urls = dict(urls)
        self._rate_limiter = rate_limiter
        self._timeout_sec = timeout_sec
        self._retry_policy = retry_policy or RetryPolicy()
        self._http = Session()

        self._http.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })
        if api_key:
            self._http.headers['apikey'] = api_key

        adapter = HTTPAdapter(
            max_retries=Retry(
                backoff_factor=0.5,
                total=3,
                status_forcelist=[
                    codes.bad_gateway,
                    codes.service_unavailable,
                ],
                allowed_methods=None,
            )
        )

        self._http.mount("http://", adapter)
        self._http.mount("https://", adapter)

    def get_url(self, network: str) -> str:
        """Get the API base URL of a network.

        Args:
            network: str
                Network name.

        Returns:
            str
                The API base URL, without trailing slash.
        """
        try:
            return self._urls[network].rstrip('/')
        except KeyError:
            raise UnsupportedNetworkError(f'Unsupported network: {network}') from None

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_fixed(3),
        retry=retry_if_exception_type(ChunkedEncodingError),
        reraise=True,
    )
    def _send(self, method: str, url: str, **kwargs: Any) -> Response:
        self._rate_limiter.acquire()
        return self._http.request(method, url, timeout=self._timeout_sec, **kwargs)

    def _request(self, method: str, url: str, **kwargs: Any) -> Response:
        """Rate limited request with error classification.

        Args:
            method: str
                HTTP method.
            url: str
                Full URL.
            **kwargs: Any
                Keyword arguments to pass to requests.

        Returns:
            Response
                The successful HTTP response.

        Raises:
            RateLimitedError: On HTTP 429.
            UpstreamError: On any other HTTP or transport failure.
        """
        try:
            response = self._send(method, url, **kwargs)
        except RequestException as e:
            raise UpstreamError(f'{method} {url} failed: {e}') from e

        if response.status_code == codes.too_many_requests:
            raise RateLimitedError(url)

        try:
            response.raise_for_status()
        except HTTPError as e:
            raise UpstreamError(f'{method} {url} failed: {e}') from e

        return response

    @staticmethod
    def _parse(model: Type[M], response: Response) -> M:
        try:
            return model.model_validate_json(response.text)
        except ValidationError as e:
            raise MalformedResponseError(f'Unexpected answer from {response.url}: {e}') from e

    def _get_withdrawal_credentials_page(self, url: str, offset: int) -> list[WithdrawalCredentialsResponse.Data]:
        response = self._request('GET', url, params=dict(limit=PAGE_SIZE, offset=offset))
        return self._parse(WithdrawalCredentialsResponse, response).data or []

    def _post_validators(self, url: str, indices_or_pubkey: str) -> list[ValidatorRecord]:
        response = self._request('POST', url, json=dict(indicesOrPubkey=indices_or_pubkey))
        return self._parse(ValidatorsResponse, response).records()

    def get_validators_by_withdrawal_credentials(
        self, credentials_or_address: str, network: str
    ) -> list[WithdrawalCredentialsResponse.Data]:
        """Get every validator using some withdrawal credentials.

        Pages are requested until a short or empty page is returned, or
        until a full page ends with the same validator as the previous
        one: some deployments keep serving the last page past the end.

        Args:
            credentials_or_address: str
                Withdrawal credentials or execution address.
            network: str
                Network name.

        Returns:
            list[WithdrawalCredentialsResponse.Data]
                Public key and index of each validator.

        Raises:
            UpstreamError: If a page can not be fetched.
            MalformedResponseError: If a page can not be parsed.
        """
        url = f'{self.get_url(network)}/validator/withdrawalCredentials/{credentials_or_address}'

        validators: list[WithdrawalCredentialsResponse.Data] = []
        previous_last = None
        offset = 0

        while True:
            try:
                page = self._retry_policy.call(self._get_withdrawal_credentials_page, url, offset)
            except (UpstreamError, MalformedResponseError) as e:
                logging.error(f'❌ Failed to fetch validators by withdrawal credentials on {network} at offset {offset}: {e}')
                raise

            if not page:
                break

            if len(page) < PAGE_SIZE:
                validators.extend(page)
                break

            last = page[-1]
            if previous_last is not None and (
                last.publickey == previous_last.publickey or last.validatorindex == previous_last.validatorindex
            ):
                logging.info(f'📄 Page at offset {offset} repeats the previous one, stopping')
                break

            previous_last = last
            validators.extend(page)
            offset += PAGE_SIZE

            logging.info(f'📄 Fetched {len(validators)} validators in {offset // PAGE_SIZE} requests, moving to offset {offset}')

        return validators

    def get_validators(self, keys: Sequence[Union[str, int]], network: str) -> list[ValidatorRecord]:
        """Get validators by index or public key, CHUNK_SIZE keys per request.

        This is best effort: a chunk failing for another reason than
        rate limiting is logged and skipped, callers must compare the
        number of returned records with what they asked for.

        Args:
            keys: Sequence[Union[str, int]]
                Validator indexes or public keys.
            network: str
                Network name.

        Returns:
            list[ValidatorRecord]
                The validators which could be fetched.
        """
        url = f'{self.get_url(network)}/validator'
        records: list[ValidatorRecord] = []

        for chunk in chunks(list(keys), CHUNK_SIZE):
            indices_or_pubkey = ','.join(str(key) for key in chunk)
            try:
                records.extend(self._retry_policy.call(self._post_validators, url, indices_or_pubkey))
            except (UpstreamError, MalformedResponseError) as e:
                logging.error(f'❌ Failed to fetch {len(chunk)} validators on {network}, skipping them: {e}')

        return records

    def get_credential_type(self, pubkey: str, network: str) -> CredentialType:
        """Get the withdrawal credential type of a single validator.

        Args:
            pubkey: str
                Validator public key.
            network: str
                Network name.

        Returns:
            CredentialType
                The type, NONE if the validator can not be fetched.
        """
        logging.info(f'🔎 Fetching credential type of validator {pubkey[:10]} on {network}')
        url = f'{self.get_url(network)}/validator'

        try:
            records = self._retry_policy.call(self._post_validators, url, remove_0x_prefix(pubkey))
        except (UpstreamError, MalformedResponseError) as e:
            logging.error(f'❌ Failed to get credential type of validator {pubkey[:10]}: {e}')
            return CredentialType.NONE

        if not records:
            logging.warning(f'⚠️ No validator data found for {pubkey[:10]} on {network}')
            return CredentialType.NONE

        result = credential_type(records[0].withdrawal_credentials)
        logging.info(f'🔎 Validator {pubkey[:10]} on {network} has credential type {result or "unknown"}')

        return result

    def get_latest_epoch(self, network: str) -> int:
        """Get the latest epoch known to the API.

        Args:
            network: str
                Network name.

        Returns:
            int
                The epoch number.

        Raises:
            UpstreamError: If the request fails.
            MalformedResponseError: If the answer can not be parsed.
        """
        url = f'{self.get_url(network)}/epoch/latest'

        def _get() -> int:
            return self._parse(EpochResponse, self._request('GET', url)).data.epoch

        return self._retry_policy.call(_get)
