#!/usr/bin/env python3

import os
import sys
import logging
from abc import ABC, abstractmethod

import psutil

logger = logging.getLogger()

DOUBLING_FLAG = '-x2'
UNKNOWN_PARAM_MSG = 'Unknown parameter specified. Exiting.'

FALLBACK_COUNT = 1

LOGGING_FORMAT = '[%(asctime)s][%(levelname)s] %(message)s'

LOG_LEVEL_NAME = os.getenv('CPUCOUNT_LOG_LEVEL', 'WARNING').upper()
DEBUG = os.getenv('CPUCOUNT_DEBUG', '').lower() in ('1', 'true', 'yes')


class InvalidArgument(ValueError):
    pass


class ProcessorCountProvider(ABC):
    """Source of the logical processor count."""

    @abstractmethod
    def get_count(self) -> int:
        pass


class FixedProcessorCountProvider(ProcessorCountProvider):
    def __init__(self, count):
        self.count = count

    def get_count(self) -> int:
        return self.count


class PsutilProcessorCountProvider(ProcessorCountProvider):
    """Logical processors visible to the calling process.

    The affinity set is used where the platform exposes it, otherwise the
    total number of logical processors. If neither can be determined the
    count is reported as 1.
    """

    def get_count(self) -> int:
        try:
            c = len(psutil.Process().cpu_affinity())
            if c > 0:
                logger.debug(f'cpu affinity: {c}')
                return c
        except Exception as e:
            logger.debug(f'cpu affinity not available: {e}')

        try:
            c = psutil.cpu_count(logical=True)
        except Exception as e:
            logger.warning(f'failed to get logical cpu count: {e}')
            c = None

        if not c:
            logger.warning(f'cpu count undetermined, assuming {FALLBACK_COUNT}')
            return FALLBACK_COUNT

        logger.debug(f'logical cpu count: {c}')
        return c


def get_multiplier(argv):
    # only the first argument is looked at
    if len(argv) == 0:
        return 1
    if argv[0] == DOUBLING_FLAG:
        return 2
    raise InvalidArgument(argv[0])


def count_processors(provider, multiplier=1):
    return provider.get_count() * multiplier


def main(argv=None, provider=None, out=None):
    if argv is None:
        argv = sys.argv[1:]
    if provider is None:
        provider = PsutilProcessorCountProvider()
    if out is None:
        out = sys.stdout

    try:
        multiplier = get_multiplier(argv)
    except InvalidArgument as e:
        logger.debug(f'unknown parameter: "{e}"')
        out.write(f'{UNKNOWN_PARAM_MSG}\n')
        return 1

    out.write(f'{count_processors(provider, multiplier)}\n')
    return 0


def setup_logging():
    log_level = getattr(logging, LOG_LEVEL_NAME, None)
    if not isinstance(log_level, int):
        log_level = logging.WARNING
    if DEBUG:
        log_level = logging.DEBUG

    logging.basicConfig(format=LOGGING_FORMAT, level=log_level,
                        stream=sys.stderr)


def run():
    setup_logging()
    sys.exit(main())


if __name__ == '__main__':
    run()
