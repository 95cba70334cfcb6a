#!/usr/bin/env python3
"""
WebSocket Client for the Obstacle Follower

This module connects to a robot bridge over WebSocket, feeds incoming frame
transforms into a TransformBuffer, runs one control cycle per incoming laser
scan, and sends back the resulting velocity command and obstacle marker.
Every cycle is logged to CSV until the bridge sends a stop message.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from typing import Any, Dict, List, Optional, Union

import websockets

from obstacle_follower.config import (
    CONTROLLER_KP,
    DEFAULT_LINEAR_SPEED,
    TERM_BLUE,
    TERM_ORANGE,
    TERM_RESET,
    WINDOW_RANGE_SIZE,
    WS_MAX_RETRY_DELAY_SECONDS,
    WS_RETRY_DELAY_SECONDS,
    WS_TIMEOUT_SECONDS,
    WS_URI,
)
from obstacle_follower.data_collector import DataCollector
from obstacle_follower.follower import CycleResult, ObstacleFollower
from obstacle_follower.messages import RangeScan, TransformStamped, Vector3, VelocityCommand
from obstacle_follower.tf_buffer import TransformBuffer


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record based on its level.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        if record.levelno == logging.INFO:
            # INFO messages: just the message without timestamp
            return record.getMessage()
        else:
            # WARNING, ERROR, etc.: include timestamp and level
            return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        # Verbose mode: show all levels with timestamps
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        # Normal mode: INFO without timestamps, WARNING/ERROR with timestamps
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class FollowerClient:
    """Obstacle follower driven over a WebSocket connection.

    This class manages the complete pipeline:
    - WebSocket connection to the robot bridge
    - Transform ingestion into the transform buffer
    - One follower cycle per laser scan
    - Command and marker publishing
    - Data logging to CSV files

    Attributes:
        uri: WebSocket URI to connect to.
        tf_buffer: Transform cache fed by incoming transform messages.
        follower: Obstacle follower run on each scan.
        data_collector: Handles CSV file logging.
        last_cmd: Command sent in the previous cycle.
        cycle_count: Number of scans processed.
        failure_count: Number of cycles that held the previous command.
        should_stop: Flag indicating whether to stop the control loop.
    """

    def __init__(
        self,
        uri: str,
        output_dir: str = ".",
        kp: float = CONTROLLER_KP,
        range_size: int = WINDOW_RANGE_SIZE,
        tf_buffer: Optional[TransformBuffer] = None,
    ) -> None:
        """Initialize the client.

        Args:
            uri: WebSocket URI to connect to (must start with ws:// or wss://).
            output_dir: Base directory for output files (default: current directory).
            kp: Proportional steering gain.
            range_size: Scan window half-width in readings.
            tf_buffer: Transform buffer to use. A new one is created if None.

        Raises:
            ValueError: If the URI format, kp or range_size is invalid.
        """
        # Validate URI format
        if not uri or not uri.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URI: {uri}. Must start with 'ws://' or 'wss://'")

        self.uri: str = uri
        self.should_stop: bool = False

        # Lookups never wait: transform ingestion runs on this same event loop
        self.tf_buffer = tf_buffer if tf_buffer is not None else TransformBuffer()
        self.follower = ObstacleFollower(
            self.tf_buffer, kp=kp, range_size=range_size, transform_timeout=0.0
        )
        self.data_collector = DataCollector(output_dir=output_dir)

        self.last_cmd = VelocityCommand(linear=Vector3(DEFAULT_LINEAR_SPEED, 0.0, 0.0))
        self.cycle_count: int = 0
        self.failure_count: int = 0
        self._last_failure: Optional[str] = None

    def process_transform_message(self, data: Dict[str, Any]) -> None:
        """Store the transform(s) carried by a transform message.

        Accepts either a single transform at the top level or a list under
        ``"transforms"``.

        Args:
            data: Parsed JSON message.
        """
        is_static = bool(data.get("static", False))
        items = data["transforms"] if "transforms" in data else [data]
        for item in items:
            transform = TransformStamped.from_dict(item)
            self.tf_buffer.set_transform(transform, authority="websocket", is_static=is_static)

    def process_scan_message(self, data: Dict[str, Any]) -> List[str]:
        """Run one follower cycle on a scan message.

        Args:
            data: Parsed JSON message containing a laser scan.

        Returns:
            Outgoing JSON messages: the velocity command, then the marker if
            an obstacle was detected.
        """
        scan = RangeScan.from_dict(data)
        result = self.follower.process_scan(scan, self.last_cmd)
        self.last_cmd = result.command
        self.cycle_count += 1

        self._report(result)
        self.data_collector.log_cycle(time.time(), result)
        self.data_collector.save_scan(scan)

        outgoing = [json.dumps({"message_type": "cmd_vel", **result.command.to_dict()})]
        if result.marker is not None:
            outgoing.append(json.dumps({"message_type": "marker", **result.marker.to_dict()}))
        return outgoing

    def _report(self, result: CycleResult) -> None:
        # Log state changes only, not every cycle
        if result.failure is not None:
            self.failure_count += 1
            if result.failure != self._last_failure:
                logging.warning(f"Holding last command: {result.failure}")
        elif self._last_failure is not None or self.cycle_count == 1:
            logging.info(
                f"{TERM_BLUE}✓ Tracking obstacle at {result.closest.distance:.2f} m{TERM_RESET}"
            )
        self._last_failure = result.failure

    def parse_and_route_message(self, message: Union[str, bytes]) -> List[str]:
        """Parse incoming message and route to appropriate handler.

        Args:
            message: Raw JSON message string or bytes from WebSocket.

        Returns:
            Outgoing JSON messages to send back (possibly empty).
        """
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = json.loads(message)

            message_type = data.get("message_type")

            if message_type == "scan":
                return self.process_scan_message(data)
            elif message_type == "transform":
                self.process_transform_message(data)
            elif message_type == "stop":
                logging.info(f"{TERM_ORANGE}Stop requested by server{TERM_RESET}")
                self.should_stop = True
            else:
                logging.debug(f"\nReceived unknown message: {json.dumps(data, indent=2)}\n")

        except json.JSONDecodeError as e:
            logging.error(f"Error parsing JSON: {e}")
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Error processing message data: {e}")

        return []

    async def run_control_loop(self) -> None:
        """Connect to WebSocket and run the control loop.

        Maintains a connection to the WebSocket server with automatic retry logic
        and exponential backoff. Continues running until should_stop flag is set
        (typically by receiving a stop message).
        """
        retry_delay = WS_RETRY_DELAY_SECONDS
        max_retry_delay = WS_MAX_RETRY_DELAY_SECONDS

        while not self.should_stop:
            try:
                async with websockets.connect(self.uri) as websocket:
                    logging.info(f"{TERM_BLUE}✓ Connected to server{TERM_RESET}")
                    retry_delay = WS_RETRY_DELAY_SECONDS

                    while not self.should_stop:
                        try:
                            message = await asyncio.wait_for(
                                websocket.recv(), timeout=WS_TIMEOUT_SECONDS
                            )
                        except asyncio.TimeoutError:
                            continue
                        except websockets.exceptions.ConnectionClosed:
                            logging.warning("Connection closed by server")
                            break

                        for reply in self.parse_and_route_message(message):
                            await websocket.send(reply)

            except (OSError, websockets.exceptions.WebSocketException) as e:
                if self.should_stop:
                    break
                logging.error(f"Connection error: {e}")
                logging.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, max_retry_delay)

        logging.info(
            f"{TERM_BLUE}Processed {self.cycle_count} scans, "
            f"{self.failure_count} held commands{TERM_RESET}"
        )

    def stop(self) -> None:
        """Signal the client to stop."""
        self.should_stop = True

    def __enter__(self) -> "FollowerClient":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        self.data_collector.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called.

        Args:
            exc_type: Exception type if an exception occurred.
            exc_val: Exception value if an exception occurred.
            exc_tb: Exception traceback if an exception occurred.
        """
        self.data_collector.cleanup()
        logging.info(
            f"Plot this run with: python -m obstacle_follower.plot_results "
            f"--results-dir {self.data_collector.run_dir.parent} --run {self.data_collector.run_dir.name}"
        )


async def main(
    uri: str = WS_URI,
    kp: float = CONTROLLER_KP,
    range_size: int = WINDOW_RANGE_SIZE,
    output_dir: str = ".",
) -> None:
    """Main entry point for the WebSocket client.

    Creates a FollowerClient instance, sets up signal handlers for graceful
    shutdown, and starts the control loop.

    Args:
        uri: WebSocket URI of the robot bridge.
        kp: Proportional steering gain.
        range_size: Scan window half-width in readings.
        output_dir: Base directory for output files.
    """
    with FollowerClient(uri, output_dir=output_dir, kp=kp, range_size=range_size) as client:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            client.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await client.run_control_loop()


def build_parser() -> argparse.ArgumentParser:
    """Command-line options shared by ``python -m obstacle_follower`` and this module."""
    parser = argparse.ArgumentParser(
        description="WebSocket client steering a robot toward the closest obstacle"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--uri", default=WS_URI, help=f"WebSocket URI (default: {WS_URI})")
    parser.add_argument(
        "--kp", type=float, default=CONTROLLER_KP, help=f"Steering gain (default: {CONTROLLER_KP})"
    )
    parser.add_argument(
        "--range-size",
        type=int,
        default=WINDOW_RANGE_SIZE,
        help=f"Scan window half-width in readings (default: {WINDOW_RANGE_SIZE})",
    )
    parser.add_argument(
        "--output-dir", default=".", help="Base directory for results (default: current directory)"
    )
    return parser


def run(argv: Optional[List[str]] = None) -> None:
    """Parse arguments, configure logging and run the client until stopped."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        asyncio.run(
            main(uri=args.uri, kp=args.kp, range_size=args.range_size, output_dir=args.output_dir)
        )
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
    except ValueError as e:
        logging.error(str(e))
        sys.exit(2)


if __name__ == "__main__":
    run()
