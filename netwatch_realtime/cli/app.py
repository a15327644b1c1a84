from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from netwatch_realtime.config.settings import AppSettings, SettingsLoader
from netwatch_realtime.core.logging_setup import configure_logging
from netwatch_realtime.core.monitor import MonitorController
from netwatch_realtime.export.exporters import SUPPORTED_FORMATS
from netwatch_realtime.notify.webhook import WebhookNotifier
from netwatch_realtime.views.summary import compute_monitor_summary

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="netwatch", description="NETWATCH REALTIME")
    parser.add_argument("--config", default="netwatch.yaml", help="Ruta del archivo YAML")

    sub = parser.add_subparsers(dest="command", required=False)

    p_run = sub.add_parser("run", help="Monitoreo en tiempo real")
    p_run.add_argument("--ticks", type=int, default=None, help="Detener tras N ticks (por defecto: hasta Ctrl-C)")
    p_run.add_argument("--seed", type=int, default=None, help="Semilla para una sesión reproducible")
    p_run.add_argument("--export", dest="export_path", default=None, help="Exporta la ventana al terminar")
    p_run.add_argument("--format", dest="export_format", choices=SUPPORTED_FORMATS, default=None)

    sub.add_parser("init-config", help="Genera YAML por defecto")
    parser.set_defaults(ticks=None, seed=None, export_path=None, export_format=None)
    return parser


def _ensure_config(config_path: str) -> None:
    config_file = Path(config_path)
    if config_file.exists():
        return
    SettingsLoader.dump_default(config_path)
    print(f"[netwatch] Configuración base creada en {config_path}")


async def run_session(controller: MonitorController, ticks: int | None) -> None:
    controller.start()
    try:
        while ticks is None or controller.ticks + controller.failed_ticks < ticks:
            await asyncio.sleep(controller.tick_period_s / 4)
    finally:
        controller.stop()
        await controller.wait_closed()


def _run(settings: AppSettings, args: argparse.Namespace) -> None:
    controller = MonitorController.from_settings(settings, seed=args.seed)
    notifier: WebhookNotifier | None = None
    if settings.notifier.enabled:
        notifier = WebhookNotifier(settings.notifier.webhook_url, timeout_s=settings.notifier.timeout_s)
        controller.subscribe(notifier)

    try:
        asyncio.run(run_session(controller, args.ticks))
    except KeyboardInterrupt:
        logger.info("Sesión interrumpida por el usuario")
    finally:
        if notifier is not None:
            notifier.close()

    print(compute_monitor_summary(controller.snapshot()).render())

    if args.export_path:
        fmt = args.export_format or settings.export.format
        Path(args.export_path).write_text(controller.export(fmt, settings.export.precision), encoding="utf-8")
        print(f"Métricas exportadas: {args.export_path}")


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    command = args.command or "run"

    if command == "init-config":
        SettingsLoader.dump_default(args.config)
        print(f"Configuración creada en {args.config}")
        return

    _ensure_config(args.config)
    try:
        settings = SettingsLoader.load(args.config)
    except (TypeError, ValueError) as exc:
        parser.error(f"Configuración inválida en {args.config}: {exc}")
    configure_logging(settings.log_level)

    if command == "run":
        _run(settings, args)


if __name__ == "__main__":
    main()
