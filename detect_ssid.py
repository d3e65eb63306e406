#!/usr/bin/env python3
"""
Phone Artifact Network Detector

Scans visible wireless networks at a fixed rate, looks for the DARPA SubT
phone artifact hotspot ("PhoneArtifactXX") and publishes the network name
over MQTT every cycle. An empty report means the network was not seen.

Usage:
    python detect_ssid.py [--prefix PREFIX] [--rate HZ] [--interface IFACE]
                          [--output report.jsonl] [--verbose] [--debug] [--no-mqtt]

Options:
    --prefix     Network name prefix to search for (default: PhoneArtifact)
    --rate       Scan cycles per second (default: 20)
    --interface  Use this wireless interface instead of detecting one
    --output     Append one JSON line per cycle to this file
    --verbose    Show per-cycle status lines
    --debug      Show detailed debugging info
    --no-mqtt    Disable MQTT publishing

Configuration is done via SSIDDETECT_ environment variables and .env files.
Scanning needs root, or passwordless sudo for iwlist with
SSIDDETECT_SCAN_USE_SUDO=true.
"""

import argparse
import asyncio
import functools
import json
import logging
import signal
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from env_config import get_env, get_env_bool, get_env_float, load_env_files
from report_publisher import ReportPublisher
from ssid_matcher import extract_ssids, find_target_network
from ssid_scan import (DEFAULT_LINE_FILTER, DEFAULT_SCAN_COMMAND, DEFAULT_SCAN_TIMEOUT,
                       ScanInvocationFailed, dump_scan, scan_networks)
from wifi_interface import DEFAULT_INTERFACE_PATTERN, NoInterfaceFound, select_wireless_interface

DEFAULT_TARGET_PREFIX = 'PhoneArtifact'
DEFAULT_POLL_RATE = 20.0


class CycleOutcome(str, Enum):
    FOUND = 'found'
    NOT_FOUND = 'not_found'
    SCAN_ERROR = 'scan_error'


@dataclass
class CycleReport:
    report: str
    outcome: CycleOutcome
    error: Optional[str] = None


def setup_logging():
    """Setup logging configuration"""
    # Clear any existing handlers to avoid conflicts
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    log_level_str = get_env('LOG_LEVEL', 'INFO').upper()
    log_level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    log_level = log_level_map.get(log_level_str, logging.INFO)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=log_level,
        handlers=[console_handler],
        force=True
    )


class PhoneNetworkDetector:
    """Scan, match and report loop for one wireless interface"""

    def __init__(self, interface: str, target_prefix: str = DEFAULT_TARGET_PREFIX,
                 poll_rate: float = DEFAULT_POLL_RATE, publisher=None, scanner=None,
                 output_file: Optional[str] = None, scan_output_file: Optional[str] = None,
                 shutdown_event=None):
        if poll_rate <= 0:
            raise ValueError(f"poll rate must be positive, got {poll_rate}")

        self.logger = logging.getLogger('SSIDDetector')
        self.interface = interface
        self.target_prefix = target_prefix
        self.poll_rate = poll_rate
        self.publisher = publisher
        self.scanner = scanner or scan_networks
        self.scan_output_file = scan_output_file
        self.shutdown_event = shutdown_event
        self.should_exit = False

        self.cycle_count = 0
        self.found_count = 0
        self.scan_error_count = 0
        self.last_network = None

        self.output_handle = None
        if output_file:
            self.output_handle = open(output_file, 'a')
            self.logger.info(f"Reports will be written to: {output_file}")

    @property
    def period(self) -> float:
        return 1.0 / self.poll_rate

    def run_cycle(self) -> CycleReport:
        """Scan once, match the target prefix, publish and log the result"""
        self.cycle_count += 1

        try:
            result = self.scanner(self.interface)
        except ScanInvocationFailed as e:
            self.scan_error_count += 1
            self.logger.warning(f"Scan failed on {self.interface}: {e}")
            cycle = CycleReport('', CycleOutcome.SCAN_ERROR, str(e))
        except Exception as e:
            self.scan_error_count += 1
            self.logger.error(f"Unexpected error scanning {self.interface}: {e!r}")
            cycle = CycleReport('', CycleOutcome.SCAN_ERROR, repr(e))
        else:
            if self.scan_output_file:
                try:
                    dump_scan(result, self.scan_output_file)
                except OSError as e:
                    self.logger.warning(f"Could not write scan output to {self.scan_output_file}: {e}")
            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(f"Visible networks: {extract_ssids(result.lines)}")

            network = find_target_network(result, self.target_prefix)
            if network:
                self.found_count += 1
                self.logger.info(f"found {network}")
                cycle = CycleReport(network, CycleOutcome.FOUND)
            else:
                self.logger.info(f"did not find {self.target_prefix}")
                cycle = CycleReport('', CycleOutcome.NOT_FOUND)

        self.track_transition(cycle)
        self.publish(cycle)
        self.output_report(cycle)
        return cycle

    def track_transition(self, cycle: CycleReport):
        """Log when the phone network appears or disappears"""
        if cycle.outcome == CycleOutcome.SCAN_ERROR:
            return
        network = cycle.report or None
        if network == self.last_network:
            return
        if network:
            self.logger.info(f"Phone network {network} is now visible")
        else:
            self.logger.info(f"Phone network {self.last_network} is no longer visible")
        self.last_network = network

    def publish(self, cycle: CycleReport):
        if self.publisher is None:
            return
        try:
            self.publisher.publish_report(cycle.report, cycle.outcome.value, self.interface)
        except Exception as e:
            self.logger.error(f"Error publishing report: {e}")

    def output_report(self, cycle: CycleReport):
        if not self.output_handle:
            return
        record = {
            "timestamp": datetime.now().isoformat(),
            "interface": self.interface,
            "network": cycle.report,
            "outcome": cycle.outcome.value,
        }
        if cycle.error:
            record["error"] = cycle.error
        self.output_handle.write(json.dumps(record) + '\n')
        self.output_handle.flush()

    async def wait_with_shutdown(self, timeout: float) -> bool:
        """Wait for specified time but return immediately if shutdown is requested"""
        if self.shutdown_event:
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=timeout)
                return True
            except asyncio.TimeoutError:
                return False
        else:
            await asyncio.sleep(timeout)
            return self.should_exit

    def shutdown_requested(self) -> bool:
        return self.should_exit or (self.shutdown_event is not None and self.shutdown_event.is_set())

    async def run(self, max_cycles: Optional[int] = None):
        """Run cycles at the configured rate until shutdown.

        A cycle always finishes before the next one starts. When a cycle
        overruns its period, the next one starts right away and the schedule
        restarts from there instead of bursting to catch up.
        """
        self.logger.info(
            f"Scanning {self.interface} for {self.target_prefix}XX at {self.poll_rate:g} Hz. Press Ctrl+C to stop."
        )
        next_tick = time.monotonic()
        try:
            while not self.shutdown_requested():
                await asyncio.to_thread(self.run_cycle)
                if max_cycles is not None and self.cycle_count >= max_cycles:
                    break

                next_tick += self.period
                delay = next_tick - time.monotonic()
                if delay < 0:
                    self.logger.debug(f"Cycle overran its {self.period:.3f}s period by {-delay:.3f}s")
                    next_tick = time.monotonic()
                    delay = 0
                if await self.wait_with_shutdown(delay):
                    break
        finally:
            self.stop()

    def stop(self):
        self.logger.info(
            f"Stopping detector. Cycles: {self.cycle_count}, found: {self.found_count}, "
            f"scan errors: {self.scan_error_count}"
        )
        if self.publisher is not None:
            self.publisher.disconnect()
            self.publisher = None
        if self.output_handle:
            self.output_handle.close()
            self.output_handle = None


def build_scanner():
    """Scan function configured from the environment"""
    return functools.partial(
        scan_networks,
        command=get_env('SCAN_COMMAND', DEFAULT_SCAN_COMMAND),
        line_filter=get_env('SCAN_FILTER', DEFAULT_LINE_FILTER),
        timeout=get_env_float('SCAN_TIMEOUT', DEFAULT_SCAN_TIMEOUT),
        use_sudo=get_env_bool('SCAN_USE_SUDO', False),
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Phone artifact wireless network detector')
    parser.add_argument('--prefix', help='Network name prefix to search for')
    parser.add_argument('--rate', type=float, help='Scan cycles per second')
    parser.add_argument('--interface', help='Wireless interface to scan with')
    parser.add_argument('--output', help='Append per-cycle JSON reports to this file')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose output')
    parser.add_argument('--debug', action='store_true', help='Enable debug output')
    parser.add_argument('--no-mqtt', action='store_true', help='Disable MQTT publishing')
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)

    load_env_files()
    setup_logging()
    logger = logging.getLogger('SSIDDetector')

    # Command line arguments override environment variable
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.verbose:
        logging.getLogger().setLevel(logging.INFO)
    logger.info(f"Logging initialized with level: {logging.getLevelName(logging.getLogger().getEffectiveLevel())}")

    target_prefix = args.prefix if args.prefix is not None else get_env('TARGET_PREFIX', DEFAULT_TARGET_PREFIX)
    if not target_prefix:
        logger.critical("Target network prefix is empty, terminating")
        return 1
    poll_rate = args.rate if args.rate is not None else get_env_float('POLL_RATE', DEFAULT_POLL_RATE)
    if poll_rate <= 0:
        logger.critical(f"Poll rate must be positive, got {poll_rate:g}, terminating")
        return 1

    try:
        interface = select_wireless_interface(
            pattern=get_env('INTERFACE_PATTERN', DEFAULT_INTERFACE_PATTERN),
            explicit=args.interface or get_env('INTERFACE', ''),
        )
    except NoInterfaceFound as e:
        logger.critical(f"Did not find a wireless interface, terminating: {e}")
        return 1

    publisher = None
    if args.no_mqtt or not get_env_bool('MQTT_ENABLED', True):
        logger.info("MQTT disabled, reports will only be logged")
    else:
        publisher = ReportPublisher()
        if not publisher.connect():
            logger.warning("Failed to start MQTT client, continuing without MQTT...")
            publisher = None

    shutdown_event = asyncio.Event()
    detector = PhoneNetworkDetector(
        interface,
        target_prefix=target_prefix,
        poll_rate=poll_rate,
        publisher=publisher,
        scanner=build_scanner(),
        output_file=args.output,
        scan_output_file=get_env('SCAN_OUTPUT_FILE', '') or None,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down after the current cycle...")
        detector.should_exit = True
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, signal_handler, signum)

    await detector.run()
    return 0


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
