"""Command-line entry point for browsing, downloading and selecting models."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence, TextIO

from .clients.errors import CatalogError
from .config import PIPELINE_TYPES, Settings
from .logging_config import configure_logging
from .services.downloader import DownloadError
from .services.registry import InferenceLoadFailed, ModelRegistry
from .storage.errors import RepositoryError

_LOGGER = logging.getLogger(__name__)


class ModelsCLI:
    """Render registry operations as terminal output."""

    def __init__(
        self,
        registry: ModelRegistry,
        *,
        stdout: Optional[TextIO] = None,
    ) -> None:
        self._registry = registry
        self._out = stdout or sys.stdout

    def _print(self, *parts: object) -> None:
        print(*parts, file=self._out)

    def list(self, pipeline: str, *, refresh: bool = False) -> int:
        entries = self._registry.list_models(pipeline, refresh=refresh)
        local = self._registry.local_models().records
        width = max([len("MODEL ID")] + [len(e.id) + 1 for e in entries])
        self._print(f"{'MODEL ID':<{width}}  {'LAST MODIFIED':<24}  DOWNLOADS")
        for entry in entries:
            marker = "*" if entry.id in local else ""
            self._print(
                f"{entry.id + marker:<{width}}  "
                f"{entry.last_modified:<24}  {entry.downloads}"
            )
        return 0

    def show(self, model_id: str, *, refresh: bool = False) -> int:
        metadata = self._registry.get_metadata(model_id, refresh=refresh)
        self._print("Model:", metadata.id)
        self._print("Version:", metadata.content_hash or "-")
        self._print("Files:", len(metadata.files))
        self._print("Download size:", metadata.total_download_bytes)
        self._print("Backends:", ", ".join(metadata.compatible_backends))
        self._print("LLaMA compatible:", "yes" if metadata.llama_compatible else "no")
        if metadata.architecture_family:
            self._print("Architecture:", metadata.architecture_family)
        if metadata.license:
            self._print("License:", metadata.license)
        self._print("State:", self._registry.model_state(model_id).value)
        return 0

    def download(
        self,
        model_id: Optional[str],
        *,
        download_all: bool = False,
        pipeline: Optional[str] = None,
        force: bool = False,
    ) -> int:
        if download_all:
            if not pipeline:
                raise ValueError("--all requires --pipeline")
            records = self._registry.download_all(
                pipeline,
                force=force,
                on_progress=lambda mid, done, total: self._print(
                    f"{mid}: {done}/{total}"
                ),
            )
            for record in records:
                self._print("Downloaded", record.id)
            return 0

        if not model_id:
            raise ValueError("model id required unless --all is given")
        local = self._registry.local_models().records
        if model_id in local and not force:
            self._print("Skipping", model_id, "already downloaded")
            return 0
        record = self._registry.download(
            model_id,
            lambda done, total: self._print(f"{model_id}: {done}/{total}"),
        )
        self._print("Downloaded", record.id)
        return 0

    def use(self, model_id: str, *, load: bool = False) -> int:
        path = self._registry.activate(model_id, load=load)
        self._print("Active model:", model_id)
        self._print("Path:", path)
        return 0

    def status(self) -> int:
        record = self._registry.status()
        if record is None:
            self._print("No active model set")
            return 0
        self._print("Active model:", record.id)
        self._print("Path:", record.local_path)
        self._print("Downloaded:", record.downloaded_at.isoformat())
        self._print("Version:", record.version)
        self._print("Type:", record.model_type)
        return 0

    def stats(self) -> int:
        self._print("Total models:", self._registry.global_stats().total_models)
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modelhub", description="Manage Hugging Face models"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List models for a pipeline type")
    list_cmd.add_argument("--pipeline", required=True, choices=PIPELINE_TYPES)
    list_cmd.add_argument("--refresh", action="store_true")

    show_cmd = sub.add_parser("show", help="Show enriched model metadata")
    show_cmd.add_argument("model_id")
    show_cmd.add_argument("--refresh", action="store_true")

    download_cmd = sub.add_parser("download", help="Download model files")
    download_cmd.add_argument("model_id", nargs="?")
    download_cmd.add_argument(
        "--all", dest="download_all", action="store_true",
        help="download every model listed for --pipeline",
    )
    download_cmd.add_argument("--pipeline", choices=PIPELINE_TYPES)
    download_cmd.add_argument(
        "--force", action="store_true", help="force re-download"
    )

    use_cmd = sub.add_parser("use", help="Set active model")
    use_cmd.add_argument("model_id")
    use_cmd.add_argument(
        "--load", action="store_true",
        help="also ask the inference server to load the model",
    )

    sub.add_parser("status", help="Show active model info")
    sub.add_parser("stats", help="Show registry-wide statistics")

    serve_cmd = sub.add_parser("serve", help="Run the HTTP API")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    registry: Optional[ModelRegistry] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    registry = registry or ModelRegistry.from_settings(Settings.from_env())

    if args.command == "serve":
        from .webapp import create_app

        app = create_app({"REGISTRY": registry})
        app.run(host=args.host, port=args.port, threaded=True)
        return 0

    cli = ModelsCLI(registry, stdout=stdout)
    try:
        if args.command == "list":
            return cli.list(args.pipeline, refresh=args.refresh)
        if args.command == "show":
            return cli.show(args.model_id, refresh=args.refresh)
        if args.command == "download":
            return cli.download(
                args.model_id,
                download_all=args.download_all,
                pipeline=args.pipeline,
                force=args.force,
            )
        if args.command == "use":
            return cli.use(args.model_id, load=args.load)
        if args.command == "status":
            return cli.status()
        return cli.stats()
    except (
        CatalogError,
        DownloadError,
        RepositoryError,
        InferenceLoadFailed,
        ValueError,
    ) as exc:
        _LOGGER.error("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
