"""
core/script_generator.py
------------------------
Writes a schema's DDL to a standalone ``.sql`` script.

Design Decisions:
    * The script is plain SQL that runs in any client of the target product
      without this tool installed.
    * Statements come from the same :class:`~core.writer.MetaWriter` used for
      live migrations, so a reviewed script and a live run issue identical
      DDL.
"""
from __future__ import annotations

import datetime
from pathlib import Path

from config import CONFIG
from core.writer import MetaWriter
from logger import get_logger
from models.schema import Schema

log = get_logger(__name__)

_HEADER_TEMPLATE = """\
-- DDL script
-- Schema       : {schema}
-- Dialect      : {dialect}
-- Tables       : {table_count}
-- Generated    : {timestamp}
-- Tool Version : {app_name} v{app_version}
--
-- Review before running. Existing objects are not altered or dropped.
"""


def render_ddl_script(writer: MetaWriter, schema: Schema) -> str:
    """
    Render the CREATE SCHEMA statement and every table's CREATE statements,
    each terminated by ``;``.

    Raises:
        UnsupportedTypeError: If a column type has no rendering in the dialect.
    """
    header = _HEADER_TEMPLATE.format(
        schema=schema.name,
        dialect=writer.dialect.name,
        table_count=len(schema.tables),
        timestamp=datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        app_name=CONFIG.app_name,
        app_version=CONFIG.app_version,
    )
    blocks = [header, writer.create_statement_for(schema) + ";"]
    for table in schema.tables:
        blocks.append(f"-- Table {writer.table_name(table)}")
        blocks.extend(sql + ";" for sql in writer.create_statements_for(table))
    return "\n\n".join(blocks) + "\n"


def generate_ddl_script(
    writer: MetaWriter,
    schema: Schema,
    output_dir: Path | str | None = None,
) -> Path:
    """
    Write ``<schema>_<dialect>.sql`` into *output_dir*.

    Args:
        writer:     Writer for the dialect the script targets.
        schema:     Schema whose tables are already read (see ``MetaReader.read``).
        output_dir: Directory to write to; defaults to ``SCRIPTS_DIR``.

    Returns:
        Path to the generated script file.
    """
    out_dir = Path(output_dir) if output_dir is not None else CONFIG.migration.scripts_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{schema.name}_{writer.dialect.name}.sql"

    out_path.write_text(render_ddl_script(writer, schema), encoding="utf-8")
    log.info("Generated DDL script: %s", out_path)
    return out_path
