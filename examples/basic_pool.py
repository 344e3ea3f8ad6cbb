import asyncio
import logging
import random

from pytaskpool import Pool

logging.basicConfig(level=logging.INFO)


async def fetch_user(user_id: int, index: int, pool) -> dict:
    await asyncio.sleep(random.uniform(0.01, 0.1))
    if user_id == 13:
        raise LookupError(f"user {user_id} not found")
    return {"id": user_id, "name": f"user-{user_id}"}


def report_progress(user_id: int, pool) -> None:
    print(f"[{pool.processed_percentage():5.1f}%] user {user_id} done")


async def main():
    user_ids = list(range(10, 20))

    result = await (
        Pool.for_items(user_ids)
        .with_concurrency(3)
        .on_task_finished(report_progress)
        .process(fetch_user)
    )

    print(f"Fetched {len(result.results)} users")
    for error in result.errors:
        print(f"Failed for {error.item}: {error.message}")


if __name__ == "__main__":
    asyncio.run(main())
