"""
Scoped resources: acquisition in order, release in reverse, even on error.

Run: python examples/scoped_connections.py
"""
import asyncio

from scopepy import (
    ConsoleLogger,
    Handle,
    Runtime,
    from_resource,
)


class Connection:
    def __init__(self, name: str):
        self.name = name
        print(f"[conn] open {name}")

    async def query(self, x: int) -> int:
        await asyncio.sleep(0.01)
        return x * 3

    async def close(self) -> None:
        print(f"[conn] close {self.name}")


class Subscription:
    label = "events"

    def acquire(self) -> Handle[str]:
        print("[sub] subscribe")
        return Handle("events", lambda: print("[sub] unsubscribe"))


async def mk_primary() -> Connection:
    return Connection("primary")


async def main():
    rt = Runtime(logger=ConsoleLogger(level="DEBUG"))
    primary = from_resource(mk_primary, lambda c: c.close(), label="primary")

    async def run_query(conn: Connection, topic: str) -> int:
        print(f"[body] querying while subscribed to {topic}")
        return await conn.query(7)

    val = await rt.run_scoped_async([primary, Subscription()], run_query)
    print("query =>", val)  # 21

    try:
        async with rt.async_using(from_resource(mk_primary, lambda c: c.close())) as (conn,):
            raise RuntimeError("body failed")
    except RuntimeError as ex:
        print("body error surfaced:", ex)  # connection was still closed


if __name__ == "__main__":
    asyncio.run(main())
