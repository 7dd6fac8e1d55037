from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from pgxsheets.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from pgxsheets.db.connection import db_connection
from pgxsheets.db.history import ProvenanceWriter
from pgxsheets.db.store import PgStore
from pgxsheets.exporters.registry import gene_exporters
from pgxsheets.exporters.starter_pack import StarterPack
from pgxsheets.importers.registry import IMPORTERS, get_importer
from pgxsheets.logging.init import log_summary, set_debug, setup_logging
from pgxsheets.models.config_models import AppConfig
from pgxsheets.services.archive import DataArtifactArchive
from pgxsheets.services.orchestrator import ImportRunError, ProcessingError, run_import
from pgxsheets.services.summary import render_summary_line
from pgxsheets.services.upload import FileStoreClient

"""CLI entrypoint.

    python -m pgxsheets.cli [--debug] [-c CONFIG] import <importer> [-d DIR] [--single-transaction]
    python -m pgxsheets.cli [--debug] [-c CONFIG] export [-d DIR] [--archive] [--upload]
    python -m pgxsheets.cli [--debug] [-c CONFIG] starter GENE [GENE ...] [-d DIR]

Exit codes: 0 success, 1 fatal (config, directory, connection), 2 import
run aborted on a failing file.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_ABORTED = 2


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; with override its values win over the inherited environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="pgxsheets", description="Spreadsheet artifacts <-> PostgreSQL")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("-c", "--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Replace an importer's tables from a directory of artifacts")
    imp.add_argument("importer", choices=sorted(IMPORTERS))
    imp.add_argument("-d", "--directory", type=Path, help="directory containing files to process (*.xlsx)")
    imp.add_argument("--single-transaction", action="store_true", default=None,
                     help="roll back the whole run (delete phase included) on failure")

    exp = sub.add_parser("export", help="Write gene artifacts")
    exp.add_argument("-d", "--directory", type=Path, help="directory to write files to")
    exp.add_argument("--archive", action="store_true", default=None,
                     help="write into a dated cpic_information_<date>/genes archive")
    exp.add_argument("--upload", action="store_true", help="publish written files to object storage")

    st = sub.add_parser("starter", help="Write blank artifacts for new genes")
    st.add_argument("genes", nargs="+", metavar="GENE", help="gene symbol")
    st.add_argument("-d", "--directory", type=Path, default=Path("."), help="directory to write files to")
    return p.parse_args(argv)


def _import(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    importer_cfg = cfg.importers.get(args.importer)
    directory = args.directory or (Path(importer_cfg.directory) if importer_cfg else None)
    if directory is None:
        logger.error(f"no directory for importer {args.importer} (use -d or config importers.{args.importer})")
        return EXIT_FATAL
    single = cfg.single_transaction if args.single_transaction is None else args.single_transaction
    importer = get_importer(args.importer, keep_na_strings=cfg.keep_na_strings)
    logger.info(f"Processing files from: {directory}")

    try:
        with db_connection(cfg.database) as cur:
            store = PgStore(cur)
            try:
                result = run_import(importer, directory, store, single_transaction=single)
            except ImportRunError as e:
                logger.error(f"import: {e}")
                if e.result is not None:
                    log_summary(render_summary_line(e.result).removeprefix("SUMMARY "))
                return EXIT_ABORTED
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    log_summary(render_summary_line(result).removeprefix("SUMMARY "))
    return EXIT_SUCCESS


def _export(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    export_cfg = cfg.export
    directory = args.directory or (Path(export_cfg.directory) if export_cfg else None)
    if directory is None:
        logger.error("no export directory (use -d or config export.directory)")
        return EXIT_FATAL
    archive = (export_cfg.archive if export_cfg else False) if args.archive is None else args.archive
    upload_cfg = export_cfg.upload if export_cfg else None
    if args.upload and upload_cfg is None:
        logger.error("--upload needs an export.upload section in the config")
        return EXIT_FATAL

    try:
        with db_connection(cfg.database) as cur:
            store = PgStore(cur)
            publisher = FileStoreClient(upload_cfg, ProvenanceWriter(store)) if args.upload else None
            exporters = gene_exporters(store, publisher=publisher)
            if archive:
                written = DataArtifactArchive(directory, exporters).write()
            else:
                written = [p for e in exporters for p in e.export(directory)]
    except ProcessingError as e:
        logger.error(f"export: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    log_summary(f"export files={len(written)} directory={directory}")
    return EXIT_SUCCESS


def _starter(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    try:
        with db_connection(cfg.database) as cur:
            written = StarterPack(PgStore(cur)).write(args.genes, args.directory)
    except (ProcessingError, ValueError) as e:
        logger.error(f"starter: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    log_summary(f"starter files={len(written)} directory={args.directory}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    # an explicit [] must not fall back to sys.argv (pytest arguments)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug(logger)

    if args.command == "import":
        return _import(args, cfg, logger)
    if args.command == "starter":
        return _starter(args, cfg, logger)
    return _export(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
