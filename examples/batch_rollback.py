"""
Parallel batch acquisition with rollback when one member fails.

Run: python examples/batch_rollback.py
"""
import asyncio

from scopepy import AcquisitionError, Batch, Handle, run_scoped_async


class Replica:
    def __init__(self, name: str, delay: float, healthy: bool = True):
        self.label = name; self.delay = delay; self.healthy = healthy

    async def acquire(self) -> Handle[str]:
        await asyncio.sleep(self.delay)
        if not self.healthy:
            raise ConnectionError(f"{self.label} refused connection")
        print(f"[replica] connected {self.label}")

        async def close() -> None:
            print(f"[replica] closed {self.label}")

        return Handle(self.label, close)


async def main():
    ok = Batch([lambda: Replica("r1", 0.02), lambda: Replica("r2", 0.01)])
    names = await run_scoped_async([ok], lambda conns: ",".join(conns))
    print("used =>", names)

    bad = Batch([lambda: Replica("r1", 0.02), lambda: Replica("r2", 0.0, healthy=False), lambda: Replica("r3", 0.03)])
    try:
        await run_scoped_async([bad], lambda conns: print("never runs"))
    except AcquisitionError as ex:
        print("batch failed:", ex)  # r1 and r3 were closed first
        print("entry states:", [e.state.name for e in bad.entries])


if __name__ == "__main__":
    asyncio.run(main())
