"""YAML export of session step trails.

Each finished session is written to ``<output_dir>/<session_id>.yaml`` so a
failed or surprising result can be traced stage by stage.
"""

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from empforge.session.session import CreationSession

logger = logging.getLogger(__name__)


class TrailExporter:
    """Writes session snapshots and their step trails to YAML files.

    Parameters
    ----------
    output_dir:
        Directory where trail files will be written.  Created automatically
        if it does not exist.
    """

    def __init__(self, output_dir: Path | str) -> None:
        self.output_dir = Path(output_dir)
        os.makedirs(self.output_dir, exist_ok=True)

    def export(self, session: 'CreationSession') -> Path:
        path = self.output_dir / f"{session.id}.yaml"
        with open(path, "w", encoding="utf-8") as fh:
            dump_yaml(session.to_dict(), fh)
        logger.info("Trail of %s exported to %s", session.id, path)
        return path


def dump_yaml(data, stream=None):
    return yaml.dump(
        data,
        stream,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )
