import asyncio
import logging

from pytaskpool import Pool

logging.basicConfig(level=logging.DEBUG)


async def find_first_large(value: int, index: int, pool) -> int:
    await asyncio.sleep(0.05)
    if value > 100:
        print(f"Found {value} at position {index}, stopping")
        pool.stop()
    return value


async def main():
    values = [3, 17, 42, 256, 8, 999, 4]

    result = await (
        Pool.for_items(values)
        .with_concurrency(2)
        .use_corresponding_results()
        .process(find_first_large)
    )

    # Items never dispatched (and the one that stopped the pool) keep NOT_RUN
    for value, slot in zip(values, result.results):
        print(f"{value:>4} -> {slot}")


if __name__ == "__main__":
    asyncio.run(main())
