from __future__ import annotations

import argparse
import json
import logging
import os
import time

from smartmon_tap.collector import CollectionResult, SmartmonCollector, build_payload
from smartmon_tap.config import default_config, load_config
from smartmon_tap.exposition import render, write_textfile
from smartmon_tap.logging_utils import configure_logging, resolve_log_level
from smartmon_tap.metrics import Measurement, MetricNormalizer
from smartmon_tap.mqtt_client import MqttPublisher
from smartmon_tap.schema import validate_payload

ROOT_UID = 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="smartctl disk health exporter")
    parser.add_argument(
        "--config",
        help="Path to CFG configuration file (defaults are used when omitted)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print metrics to stdout instead of publishing to MQTT",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single collection pass, then exit",
    )
    parser.add_argument(
        "--output-file",
        help="Write metrics in text exposition format to this file (overwrites on each loop)",
    )
    parser.add_argument(
        "--dump-json",
        help="Write the JSON payload to a file (overwrites on each loop)",
    )
    return parser


def privilege_warning(normalizer: MetricNormalizer) -> list[Measurement]:
    """Return a warning measurement when not running as root."""
    if not hasattr(os, "geteuid") or os.geteuid() == ROOT_UID:
        return []
    logging.getLogger("smartmon_tap").warning(
        "Not running as root, not all metrics will be available."
    )
    return [normalizer.user_warning("Not running as root, not all metrics will be available")]


def emit(
    result: CollectionResult,
    output_file: str | None,
    dump_json: str | None,
    publisher: MqttPublisher | None,
    pretty_print: bool,
) -> None:
    logger = logging.getLogger("smartmon_tap")
    payload = build_payload(result)
    schema_errors = validate_payload(payload)
    if schema_errors:
        logger.warning("Schema validation failed with %s errors.", len(schema_errors))
        logger.debug("Schema errors: %s", schema_errors)

    if dump_json:
        payload_json = json.dumps(payload, indent=2) if pretty_print else json.dumps(payload)
        with open(dump_json, "w", encoding="utf-8") as handle:
            handle.write(payload_json)

    if output_file:
        write_textfile(output_file, result.measurements)
        logger.debug("Wrote %d measurements to %s", len(result.measurements), output_file)
    elif publisher is None:
        print(render(result.measurements), end="", flush=True)

    if publisher is not None:
        publisher.publish_measurements(payload)


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("smartmon_tap")
    config = load_config(args.config) if args.config else default_config()
    pretty_print = level <= logging.DEBUG
    output_file = args.output_file or config.publish.output_file

    collector = SmartmonCollector(config.smartctl)
    warnings = privilege_warning(collector.normalizer)

    publisher = None
    if config.mqtt.enabled and not args.dry_run:
        publisher = MqttPublisher(config.mqtt)
        publisher.connect()
    elif config.mqtt.enabled:
        logger.info("Dry run enabled; skipping MQTT publish.")

    def run_once() -> CollectionResult:
        result = collector.collect()
        result.measurements[:0] = warnings
        emit(result, output_file, args.dump_json, publisher, pretty_print)
        return result

    try:
        result = run_once()
        if args.once:
            logger.info("Single-run mode enabled; exiting after one collection pass.")
            return 0 if result.ok else 1

        interval = max(1, config.publish.interval_s)
        logger.info("smartmon-tap started. Collecting every %s seconds.", interval)
        while True:
            time.sleep(interval)
            run_once()
    except KeyboardInterrupt:
        logger.info("smartmon-tap stopped.")
    finally:
        if publisher is not None:
            publisher.disconnect()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
