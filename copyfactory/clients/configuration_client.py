# copyfactory/clients/configuration_client.py
from typing import Any, Dict, List, Optional

from copyfactory.clients.base import MetaApiClient
from copyfactory.models import CloseInstructions, StrategyId
from copyfactory.utils.ids import random_id

ACCOUNT_ID_LENGTH = 64
_CONFIG = "/users/current/configuration"


class ConfigurationClient(MetaApiClient):
    """
    CopyFactory configuration API: strategies, portfolio strategies, subscribers
    and subscriptions. Strategy/subscriber payloads are plain JSON dicts.
    """

    async def generate_strategy_id(self) -> StrategyId:
        """Ask the server for an unused strategy id. Requires an API access token."""
        if self._is_not_jwt_token():
            self._handle_no_access_error("generate_strategy_id")
        resp = await self._domain_client.request_copyfactory("GET", f"{_CONFIG}/unused-strategy-id")
        return StrategyId(id=resp["id"])

    @staticmethod
    def generate_account_id() -> str:
        """Random 64 character id for a new subscriber/provider account."""
        return random_id(ACCOUNT_ID_LENGTH)

    # ---- strategies ----------------------------------------------------------------
    async def get_strategies(self, include_removed: Optional[bool] = None, limit: Optional[int] = None,
                             offset: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._list("strategies", "get_strategies", include_removed, limit, offset)

    async def get_strategy(self, strategy_id: str) -> Dict[str, Any]:
        return await self._get("strategies", strategy_id, "get_strategy")

    async def update_strategy(self, strategy_id: str, strategy: Dict[str, Any]) -> Any:
        return await self._update("strategies", strategy_id, strategy, "update_strategy")

    async def remove_strategy(self, strategy_id: str,
                              close_instructions: Optional[CloseInstructions] = None) -> Any:
        return await self._remove("strategies", strategy_id, close_instructions, "remove_strategy")

    # ---- portfolio strategies ------------------------------------------------------
    async def get_portfolio_strategies(self, include_removed: Optional[bool] = None, limit: Optional[int] = None,
                                       offset: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._list("portfolio-strategies", "get_portfolio_strategies", include_removed, limit, offset)

    async def get_portfolio_strategy(self, portfolio_id: str) -> Dict[str, Any]:
        return await self._get("portfolio-strategies", portfolio_id, "get_portfolio_strategy")

    async def update_portfolio_strategy(self, portfolio_id: str, portfolio: Dict[str, Any]) -> Any:
        return await self._update("portfolio-strategies", portfolio_id, portfolio, "update_portfolio_strategy")

    async def remove_portfolio_strategy(self, portfolio_id: str,
                                        close_instructions: Optional[CloseInstructions] = None) -> Any:
        return await self._remove("portfolio-strategies", portfolio_id, close_instructions,
                                  "remove_portfolio_strategy")

    # ---- subscribers ---------------------------------------------------------------
    async def get_subscribers(self, include_removed: Optional[bool] = None, limit: Optional[int] = None,
                              offset: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._list("subscribers", "get_subscribers", include_removed, limit, offset)

    async def get_subscriber(self, subscriber_id: str) -> Dict[str, Any]:
        return await self._get("subscribers", subscriber_id, "get_subscriber")

    async def update_subscriber(self, subscriber_id: str, subscriber: Dict[str, Any]) -> Any:
        return await self._update("subscribers", subscriber_id, subscriber, "update_subscriber")

    async def remove_subscriber(self, subscriber_id: str,
                                close_instructions: Optional[CloseInstructions] = None) -> Any:
        return await self._remove("subscribers", subscriber_id, close_instructions, "remove_subscriber")

    async def remove_subscription(self, subscriber_id: str, strategy_id: str,
                                  close_instructions: Optional[CloseInstructions] = None) -> Any:
        """Unsubscribe a subscriber from one strategy. remove_after is ignored by the server here."""
        if self._is_not_jwt_token():
            self._handle_no_access_error("remove_subscription")
        body = None
        if close_instructions is not None:
            CloseInstructions(mode=close_instructions.mode).validate()
            body = close_instructions.to_dict()
        return await self._domain_client.request_copyfactory(
            "DELETE", f"{_CONFIG}/subscribers/{subscriber_id}/subscriptions/{strategy_id}", json_body=body,
        )

    # ---- internals -----------------------------------------------------------------
    async def _list(self, collection: str, method_name: str, include_removed: Optional[bool],
                    limit: Optional[int], offset: Optional[int]) -> List[Dict[str, Any]]:
        if self._is_not_jwt_token():
            self._handle_no_access_error(method_name)
        params = {"includeRemoved": include_removed, "limit": limit, "offset": offset}
        resp = await self._domain_client.request_copyfactory("GET", f"{_CONFIG}/{collection}", params=params)
        return resp or []

    async def _get(self, collection: str, item_id: str, method_name: str) -> Dict[str, Any]:
        if self._is_not_jwt_token():
            self._handle_no_access_error(method_name)
        return await self._domain_client.request_copyfactory("GET", f"{_CONFIG}/{collection}/{item_id}")

    async def _update(self, collection: str, item_id: str, payload: Dict[str, Any], method_name: str) -> Any:
        if self._is_not_jwt_token():
            self._handle_no_access_error(method_name)
        return await self._domain_client.request_copyfactory("PUT", f"{_CONFIG}/{collection}/{item_id}",
                                                             json_body=payload)

    async def _remove(self, collection: str, item_id: str, close_instructions: Optional[CloseInstructions],
                      method_name: str) -> Any:
        if self._is_not_jwt_token():
            self._handle_no_access_error(method_name)
        body = None
        if close_instructions is not None:
            close_instructions.validate()
            body = close_instructions.to_dict()
        return await self._domain_client.request_copyfactory("DELETE", f"{_CONFIG}/{collection}/{item_id}",
                                                             json_body=body)
