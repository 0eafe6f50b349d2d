#!/usr/bin/env python3
"""
WebSocket Server for MPC Vehicle Control

This module provides the WebSocket server the driving simulator connects to.
For each telemetry event it runs one control cycle and replies with a steer
event; frames without telemetry data get a "manual" acknowledgement. Each
connection owns its own control session, and an artificial delay can be
inserted before every reply to mimic actuation latency.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from contextlib import nullcontext
from typing import Any, Optional, Union

import websockets

from mpc_control.config import (
    TERM_BLUE,
    TERM_ORANGE,
    TERM_RESET,
    WS_ACTUATION_DELAY_MS,
    WS_HOST,
    WS_PORT,
)
from mpc_control.controller import ControlSession, run_cycle
from mpc_control.data_collector import DataCollector
from mpc_control.errors import ConfigError, ControlError
from mpc_control.horizon import HorizonParams, parse_horizon_flags
from mpc_control.telemetry import (
    EVENT_PREFIX,
    MANUAL_ACK,
    TELEMETRY_EVENT,
    encode_command,
    parse_event,
)

SHUTDOWN_POLL_SECONDS = 0.2


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
            return record.getMessage()
        else:
            return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class ControlServer:
    """WebSocket transport around the per-session control pipeline.

    Attributes:
        params: Validated horizon parameters shared read-only by all sessions.
        host: Interface to bind.
        port: Port to listen on.
        delay: Artificial actuation delay before each reply (seconds).
        data_collector: Optional CSV logger for every cycle.
        should_stop: Flag indicating whether to shut the server down.
    """

    def __init__(
        self,
        params: HorizonParams,
        host: str = WS_HOST,
        port: int = WS_PORT,
        delay_ms: float = WS_ACTUATION_DELAY_MS,
        data_collector: Optional[DataCollector] = None,
    ) -> None:
        """Initialize the control server.

        Args:
            params: Validated horizon parameters.
            host: Interface to bind (default: all interfaces).
            port: Port to listen on (0-65535).
            delay_ms: Artificial delay before each command (milliseconds, >= 0).
            data_collector: Optional DataCollector for per-cycle CSV logging.

        Raises:
            ValueError: If the port or delay is out of range.
        """
        if not 0 <= port <= 65535:
            raise ValueError(f"Invalid port: {port}")
        if delay_ms < 0:
            raise ValueError(f"Actuation delay cannot be negative: {delay_ms}ms")

        self.params = params
        self.host = host
        self.port = port
        self.delay: float = delay_ms / 1000.0
        self.data_collector = data_collector
        self.should_stop: bool = False
        self.connection_count: int = 0

    async def handle_message(self, session: ControlSession, message: Union[str, bytes]) -> Optional[str]:
        """Run one cycle for a received frame and build the reply.

        Args:
            session: Control session of the connection the frame arrived on.
            message: Raw frame from the WebSocket.

        Returns:
            Reply frame to send, or None if the frame needs no reply.
        """
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        if len(message) <= 2 or not message.startswith(EVENT_PREFIX):
            return None

        try:
            event = parse_event(message)
        except json.JSONDecodeError as e:
            logging.error(f"Error parsing JSON: {e}")
            return None
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Error processing message data: {e}")
            return None
        except ControlError as e:
            logging.error(f"Malformed event frame: {e}")
            return None

        # No data in the frame: manual driving
        if event is None:
            return MANUAL_ACK

        event_name, payload = event
        if event_name != TELEMETRY_EVENT:
            logging.debug(f"Ignoring event '{event_name}'")
            return None

        # Solve off the event loop; the await keeps this connection's cycles in order
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, run_cycle, session, payload)

        if self.data_collector is not None:
            self.data_collector.log_cycle(time.time(), result)

        if result.command is None:
            return MANUAL_ACK

        if self.delay > 0:
            await asyncio.sleep(self.delay)
        return encode_command(result.command)

    async def handle_connection(self, websocket: Any) -> None:
        """Serve one simulator connection until it closes."""
        self.connection_count += 1
        connection_id = self.connection_count
        session = ControlSession(params=self.params)
        logging.info(f"{TERM_BLUE}✓ Simulator connected (session {connection_id}){TERM_RESET}")

        try:
            async for message in websocket:
                reply = await self.handle_message(session, message)
                if reply is not None:
                    await websocket.send(reply)
        except websockets.exceptions.ConnectionClosed:
            logging.warning(f"Connection closed by simulator (session {connection_id})")
        finally:
            logging.info(
                f"Session {connection_id} ended: {session.cycles} cycles, "
                f"{session.skipped} skipped, {session.solver_failures} solver fallbacks"
            )

    async def run(self) -> None:
        """Listen for simulator connections until stop() is called."""
        async with websockets.serve(self.handle_connection, self.host, self.port):
            logging.info(f"{TERM_BLUE}✓ Listening on port {self.port}{TERM_RESET}")
            while not self.should_stop:
                await asyncio.sleep(SHUTDOWN_POLL_SECONDS)

    def stop(self) -> None:
        """Signal the server to stop."""
        self.should_stop = True


async def main(
    params: Optional[HorizonParams] = None,
    port: int = WS_PORT,
    delay_ms: float = WS_ACTUATION_DELAY_MS,
    output_dir: Optional[str] = None,
) -> None:
    """Main entry point for the control server.

    Validates the configuration, sets up signal handlers for graceful
    shutdown, and serves until interrupted.

    Args:
        params: Horizon parameters (default: values from config.py).
        port: Port to listen on.
        delay_ms: Artificial actuation delay (milliseconds).
        output_dir: If given, record every cycle to CSV under this directory.

    Raises:
        ConfigError: If the horizon configuration is invalid.
    """
    params = (params if params is not None else HorizonParams()).validate()
    logging.info(f"{TERM_BLUE}Horizon: {params}{TERM_RESET}")

    collector = DataCollector(output_dir=output_dir) if output_dir is not None else None
    server = ControlServer(params, port=port, delay_ms=delay_ms, data_collector=collector)

    with collector if collector is not None else nullcontext():
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info(f"{TERM_ORANGE}\nShutdown signal received...{TERM_RESET}")
            server.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await server.run()


def cli(argv=None) -> None:
    """Parse command-line arguments and run the server."""
    params, remaining_args = parse_horizon_flags(argv)

    parser = argparse.ArgumentParser(
        description="WebSocket server for latency-compensated MPC vehicle control"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--port", type=int, default=WS_PORT, help=f"Listen port (default: {WS_PORT})")
    parser.add_argument(
        "--delay-ms",
        type=float,
        default=WS_ACTUATION_DELAY_MS,
        help=f"Artificial actuation delay before each reply (default: {WS_ACTUATION_DELAY_MS})",
    )
    parser.add_argument(
        "--record",
        metavar="OUTPUT_DIR",
        default=None,
        help="Record every cycle to CSV under OUTPUT_DIR/results/",
    )
    args = parser.parse_args(remaining_args)

    setup_logging(args.verbose)

    try:
        asyncio.run(main(params, port=args.port, delay_ms=args.delay_ms, output_dir=args.record))
    except ConfigError as e:
        logging.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
