"""
Timeout-bounded locks: fall back instead of blocking forever.

Run: python examples/lock_timeout.py
"""
import asyncio
import threading

from scopepy import Duration, run_scoped, run_scoped_async, with_timeout


def sync_demo() -> None:
    lock = threading.Lock()
    print(run_scoped([with_timeout(lock, 0.1)], lambda: "got the lock", fallback=lambda: "busy"))
    lock.acquire()
    try:
        print(run_scoped([with_timeout(lock, Duration.millis(50))], lambda: "got the lock", fallback=lambda: "busy"))
    finally:
        lock.release()


async def async_demo() -> None:
    lock = asyncio.Lock()

    async def worker(tag: str) -> str:
        async def critical() -> str:
            await asyncio.sleep(0.05)
            return f"{tag}: done"
        return await run_scoped_async([with_timeout(lock, 0.02)], critical, fallback=lambda: f"{tag}: gave up")

    for line in await asyncio.gather(worker("w1"), worker("w2")):
        print(line)


if __name__ == "__main__":
    sync_demo()
    asyncio.run(async_demo())
