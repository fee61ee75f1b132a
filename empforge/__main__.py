import asyncio
import logging
import sys
from argparse import ArgumentParser

from empforge.config import EngineConfig, load_config
from empforge.exceptions import EmpForgeError
from empforge.export import dump_yaml
from empforge.session import CreationEngine, CreationMode

logger = logging.getLogger(__name__)


async def run(config_path: str | None, verbosity: int, mode: str, request: str) -> int:
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    logging.basicConfig(level=level)

    config = load_config(config_path) if config_path else EngineConfig()
    logger.debug(f"Loaded config: {config}")
    engine = CreationEngine(config)
    session = engine.create_session(mode)
    try:
        session = await engine.submit_input(session.id, request)
    except EmpForgeError as e:
        logger.error(str(e))
        session = engine.get_session(session.id)
        dump_yaml(session.to_dict(), sys.stdout)
        return 1
    dump_yaml(session.to_dict(), sys.stdout)
    return 0


if __name__ == "__main__":
    parser = ArgumentParser('empforge')
    parser.add_argument('--config', help="Path to the engine configuration file")
    parser.add_argument('--mode', default=CreationMode.STANDARD.value, choices=[m.value for m in CreationMode],
                        help="Creation mode")
    parser.add_argument('-v', action='count', default=0, help="Verbosity level. -v for INFO, -vv for DEBUG")
    parser.add_argument('request', help="Description of the digital employee to create")
    ns = parser.parse_args()
    sys.exit(asyncio.run(run(ns.config, ns.v, ns.mode, ns.request)))
