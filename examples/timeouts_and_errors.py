import asyncio
import logging

from pytaskpool import Pool, PoolTimeoutError

logging.basicConfig(level=logging.WARNING)


async def resize_image(name: str, index: int, pool) -> str:
    seconds = {"huge.png": 0.5, "broken.png": 0.0}.get(name, 0.05)
    await asyncio.sleep(seconds)
    if name == "broken.png":
        raise ValueError("not a PNG file")
    return f"thumb-{name}"


async def on_error(error: Exception, name: str, pool) -> None:
    if isinstance(error, PoolTimeoutError):
        print(f"{name}: gave up after {pool.timeout()}s")
    else:
        print(f"{name}: {error}")
        # Lower the pressure once something looks wrong
        pool.use_concurrency(1)


async def main():
    images = ["a.png", "huge.png", "broken.png", "b.png", "c.png"]

    result = await (
        Pool.for_items(images)
        .with_concurrency(3)
        .with_timeout(0.2)
        .handle_error(on_error)
        .use_corresponding_results()
        .process(resize_image)
    )

    print(result.results)
    print(f"Thumbnails: {result.values()}")

    # The timed-out handler is still running; give it time to finish
    await asyncio.sleep(0.5)


if __name__ == "__main__":
    asyncio.run(main())
