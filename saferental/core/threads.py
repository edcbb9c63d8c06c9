import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial

# blocking work: PDF rendering, upload writes
executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="saferental-io")


async def run_in_thread(func, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor, partial(func, *args, **kwargs))
