"""Resource accessors: one endpoint path and response key per resource type."""

from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional

from .pagination import PaginationStrategy

if TYPE_CHECKING:
    from .client import DeskClient


class Resource:
    """Access one collection of the API.

    Subclasses set :attr:`resource_name` (the endpoint path),
    :attr:`object_name` (the envelope key of a single record) and, when the
    response key differs from the path, :attr:`resources_key`. A resource that
    only supports one pagination mode names it in :attr:`pagination`.
    """

    resource_name: str = ""
    resources_key: Optional[str] = None
    object_name: Optional[str] = None
    pagination: Optional[str] = None

    def __init__(
        self,
        client: "DeskClient",
        resource_name: Optional[str] = None,
        resources_key: Optional[str] = None,
        pagination: Optional[str] = None,
    ):
        self.client = client
        if resource_name is not None:
            self.resource_name = resource_name
        if resources_key is not None:
            self.resources_key = resources_key
        if pagination is not None:
            self.pagination = pagination

        if not self.resource_name:
            raise ValueError("A resource needs an endpoint path")
        if self.resources_key is None:
            self.resources_key = self.resource_name.rsplit("/", 1)[-1]
        if self.object_name is None:
            key = self.resources_key
            self.object_name = key[:-1] if key.endswith("s") else key

    def _endpoint(self, *parts: Any) -> str:
        return "/".join([self.resource_name, *(str(part) for part in parts)]) + ".json"

    async def find_all(self, params: Optional[Dict[str, Any]] = None) -> Any:
        """Fetch a single page of the collection."""
        return await self.client.get(self._endpoint(), params)

    async def find(self, resource_id: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.client.get(self._endpoint(resource_id), params)

    async def create(self, fields: Dict[str, Any]) -> Any:
        return await self.client.post(self._endpoint(), {self.object_name: fields})

    async def update(self, resource_id: Any, fields: Dict[str, Any]) -> Any:
        return await self.client.put(self._endpoint(resource_id), {self.object_name: fields})

    async def delete(self, resource_id: Any) -> Any:
        return await self.client.delete(self._endpoint(resource_id))

    def strategy_for(
        self,
        params: Optional[Dict[str, Any]] = None,
        strategy: Optional[str] = None,
        max_pages: Optional[int] = None,
    ) -> PaginationStrategy:
        """Build the strategy for one traversal.

        An explicit ``strategy`` name wins, then the resource's own mode, then
        whatever the caller's parameters imply.
        """
        manager = self.client.get_pagination_manager()
        name = strategy or self.pagination or manager.select_strategy(params)
        return manager.get_strategy(self.resources_key, params, name=name, max_pages=max_pages)

    async def iterate(
        self,
        params: Optional[Dict[str, Any]] = None,
        strategy: Optional[str] = None,
        max_pages: Optional[int] = None,
    ) -> AsyncIterator[Any]:
        """Yield every item of the collection, one page at a time.

        Nothing is fetched until the first item is requested, and a consumer
        that stops early causes no further requests. An error raised by a
        fetch ends the iteration after the items already yielded.
        """
        # A client-level sideload is cleared by the first request, so pin it
        # into the params every page is built from
        sideload = self.client.get_sideload(params)
        if sideload is not None:
            params = {**(params or {}), "sideload": sideload}

        pagination = self.strategy_for(params, strategy, max_pages)
        position = 0
        while pagination.should_get_page(position):
            items = await pagination.page(self.find_all)
            position += 1
            for item in items:
                yield item

        self.client.logger.debug(
            f"Finished {self.resource_name} traversal", pages=pagination.pages_fetched
        )

    async def collect(
        self,
        params: Optional[Dict[str, Any]] = None,
        strategy: Optional[str] = None,
        max_pages: Optional[int] = None,
    ) -> List[Any]:
        return [item async for item in self.iterate(params, strategy, max_pages)]


class Tickets(Resource):
    resource_name = "tickets"
    object_name = "ticket"


class Users(Resource):
    resource_name = "users"
    object_name = "user"


class Organizations(Resource):
    resource_name = "organizations"
    object_name = "organization"


class Groups(Resource):
    resource_name = "groups"
    object_name = "group"


class Views(Resource):
    resource_name = "views"
    object_name = "view"
    pagination = "single_page"


class TicketFields(Resource):
    """Ticket fields come back in one response."""

    resource_name = "ticket_fields"
    object_name = "ticket_field"
    pagination = "single_page"
