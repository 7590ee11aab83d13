from __future__ import annotations

from dataclasses import replace
import argparse
import logging
import signal
import sys
import threading

from .config import ControllerConfig, validate_config
from .controller import BackupController
from .k8s import KubernetesAuthenticationError, KubernetesStateStore, load_kubernetes_clients
from .reconciler import BackupReconciler

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile PerconaXtraDBBackup resources into backup jobs")
    parser.add_argument("--kubeconfig", help="Path to a kubeconfig file (default: standard search path)")
    parser.add_argument("--context", help="kubeconfig context to use")
    parser.add_argument("--in-cluster", action="store_true", help="Use the pod's service account credentials")
    parser.add_argument("--namespace", help="Watch a single namespace (default: PXCB_NAMESPACE or all)")
    parser.add_argument("--log-level", help="Logging level (default: PXCB_LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = ControllerConfig()
    if args.namespace is not None:
        config = replace(config, namespace=args.namespace)
    if args.log_level is not None:
        config = replace(config, log_level=args.log_level)

    try:
        validate_config(config)
    except ValueError as error:
        print(f"invalid configuration: {error}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        clients = load_kubernetes_clients(
            kubeconfig_path=args.kubeconfig,
            context=args.context,
            in_cluster=args.in_cluster,
        )
    except KubernetesAuthenticationError as error:
        logger.error("%s", error)
        return 3

    store = KubernetesStateStore(clients)
    controller = BackupController(
        clients=clients,
        reconciler=BackupReconciler(store=store, config=config),
        config=config,
    )

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        controller.run(stop)
    except KeyboardInterrupt:
        stop.set()
    logger.info("controller stopped")
    return 0
