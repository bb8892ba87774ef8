"""List recent tickets with their requesters sideloaded."""

import asyncio
import os

from deskpy import DeskClient


async def main():
    async with DeskClient(subdomain=os.environ["DESK_SUBDOMAIN"]) as client:
        client.set_auth(
            "basic",
            {"username": os.environ["DESK_USERNAME"], "token": os.environ["DESK_TOKEN"]},
        )

        params = {"page[size]": 25, "sort": "-updated_at", "sideload": ["users"]}
        async for ticket in client.tickets.iterate(params, max_pages=4):
            print(f"#{ticket['id']} {ticket['subject']}")

        print(client.get_debug().last_response_headers.get("X-Rate-Limit-Remaining"))


if __name__ == "__main__":
    asyncio.run(main())
