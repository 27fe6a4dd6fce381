# copyfactory/clients/base.py
from typing import Optional

from copyfactory.clients.domain_client import DomainClient
from copyfactory.errors import MethodAccessError


class MetaApiClient:
    """Common base for the REST API clients: holds the domain client and the token."""

    def __init__(self, domain_client: DomainClient) -> None:
        self._domain_client = domain_client
        self._token = domain_client.token

    @property
    def _token_type(self) -> str:
        # API access tokens are JWTs, account access tokens are not
        return "api" if len((self._token or "").split(".")) == 3 else "account"

    def _is_not_jwt_token(self) -> bool:
        return self._token_type != "api"

    def _handle_no_access_error(self, method_name: str, access_type: Optional[str] = "api") -> None:
        raise MethodAccessError(method_name, access_type or "api")
