"""Run the example chains over a small mixed array and print their results."""
import argparse
import asyncio
import logging
from asyncarray.array import AsyncArray
from asyncarray.util import config

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.1
SAMPLE = [1, 2, "three", 4]


def _delayed(loop: asyncio.AbstractEventLoop, delay: float, done, *args):
    loop.call_later(delay, done, *args)


async def run_examples(delay: float):
    """Run the parallel map, serial map, parallel filter and serial for-each examples concurrently."""
    loop = asyncio.get_running_loop()
    items = AsyncArray(SAMPLE)
    finished = []

    def track(label):
        future = loop.create_future()
        finished.append(future)

        def report(error, results):
            if error is not None:
                print(f"{label} failed: {error!r}")
            else:
                print(label, list(results))
            future.set_result(None)
        return report

    items.map(lambda item, i, done: _delayed(loop, delay, done, None, f"did {i}")) \
         .on_step_complete(track("map")) \
         .execute()

    items.map_serial(lambda item, i, done: _delayed(loop, delay, done, None, f"did {i}")) \
         .on_step_complete(track("mapSerial")) \
         .execute()

    items.filter(lambda item, i, done: _delayed(loop, delay, done, None, not isinstance(item, str))) \
         .on_step_complete(track("filter")) \
         .execute()

    def show(item, i, done):
        def later():
            print("forEachSerial", i, item)
            done()
        loop.call_later(delay, later)

    items.for_each_serial(show) \
         .on_step_complete(track("forEachSerial")) \
         .execute()

    await asyncio.gather(*finished)


def main():
    """Run the example chains from the command line.

    Command Line Arguments:
        --delay: Seconds each worker waits before reporting (config key 'demo_delay')
        --logger_levels: Logger levels in format 'logger:level,logger:level,...'
        --logger_files: Logger files in format 'logger:file,logger:file,...'
    """
    parser = argparse.ArgumentParser(description='Run example asyncarray chains over [1, 2, "three", 4].')
    parser.add_argument("--delay", type=float, default=None, help="Seconds each worker waits before calling its continuation.")
    parser.add_argument("--logger_levels", type=str, help="Logger levels in format 'logger:level,logger:level,...'")
    parser.add_argument("--logger_files", type=str, help="Logger files in format 'logger:file,logger:file,...'")
    args = parser.parse_args()

    config.configure_logger(args.logger_levels, logger_files=args.logger_files)

    delay = args.delay
    if delay is None:
        delay = float(config.get_config().get("demo_delay", DEFAULT_DELAY))
    logger.debug(f"Running examples with a delay of {delay}s")

    asyncio.run(run_examples(delay))


if __name__ == '__main__':
    main()
