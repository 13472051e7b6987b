import argparse
from pathlib import Path

from loguru import logger

from oem_installer.__version__ import __version__
from oem_installer.config.settings import CONFIG_PATH, load_config
from oem_installer.domain import RecoveryType
from oem_installer.logging import LoggerFactory, setup_logging
from oem_installer.services.phases import require_distinct_devices
from oem_installer.services.recovery_copy import copy_recovery_partition
from oem_installer.services.system_install import install_system_partitions
from oem_installer.storage.discovery import get_partitions
from oem_installer.storage.exceptions import StorageError
from oem_installer.storage.layout import plan_layout


def build_parser():
    parser = argparse.ArgumentParser(
        prog="oem-installer",
        description="First-boot disk provisioner for OEM recovery media",
    )
    parser.add_argument("label", help="Filesystem label of the recovery partition")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Installer configuration (default: {CONFIG_PATH})",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Enable trace output (very verbose)")
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for log files")
    return parser


def run(label, config_path=None):
    """Discover, plan and provision. Raises StorageError on failure."""
    config = load_config(config_path)
    partitions = get_partitions(label, config)
    require_distinct_devices(partitions)
    partitions = plan_layout(partitions, config)

    if config.recovery.type == RecoveryType.INSTALLER_ONLY:
        return install_system_partitions(partitions, config)
    return copy_recovery_partition(partitions, config)


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, trace=args.trace, log_dir=args.log_dir)
    log = LoggerFactory.for_system()
    log.info(f"oem-installer {__version__} starting (label {args.label})")

    try:
        partitions = run(args.label, args.config)
    except StorageError as error:
        log.error(f"Installation failed: {error}")
        return 1
    finally:
        logger.complete()

    log.success(f"Provisioned {partitions.target_dev_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
