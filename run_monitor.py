#!/usr/bin/env python3
"""
Bench monitor: print everything a board sends and summarize telemetry frames.

Examples:
    python run_monitor.py --list
    python run_monitor.py --port /dev/ttyUSB0 --baud 115200 --duration 10
    python run_monitor.py --port COM3 --send "AA 55" --hex-input --reset
"""

import argparse
import logging
import sys
import time

from serial_monitor_lib import SerialMonitorController, list_ports, protocol
from serial_monitor_lib.errors import SerialMonitorError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serial monitor with telemetry summary")
    parser.add_argument("--list", action="store_true", help="List serial ports and common baud rates, then exit")
    parser.add_argument("--port", default="", help="Serial port (e.g. /dev/ttyUSB0)")
    presets = ", ".join(str(b) for b in protocol.COMMON_BAUD_RATES)
    parser.add_argument(
        "--baud", type=int, default=protocol.DEFAULT_BAUD,
        help=f"Baud rate (common: {presets}; default {protocol.DEFAULT_BAUD})"
    )
    parser.add_argument("--duration", type=float, default=10.0, help="Seconds to monitor (0 = until Ctrl-C)")
    parser.add_argument("--max-points", type=int, default=protocol.DEFAULT_MAX_POINTS)
    parser.add_argument("--send", default=None, help="Text to send once connected")
    parser.add_argument("--hex-input", action="store_true", help="Treat --send as hex digits")
    parser.add_argument("--hex-display", action="store_true", help="Print received data as hex")
    parser.add_argument("--reset", action="store_true", help="Pulse DTR after connecting")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.list:
        ports = list_ports()
        if not ports:
            print("No serial ports found")
        for p in ports:
            print(f"{p.device:20} {p.description}")
        print("Common baud rates: " + " ".join(str(b) for b in protocol.COMMON_BAUD_RATES))
        return 0

    controller = SerialMonitorController(max_points=args.max_points)
    controller.set_hex_display(args.hex_display)

    try:
        controller.connect(port=args.port, baud=args.baud)
    except SerialMonitorError as e:
        print(f"Connect failed: {e}", file=sys.stderr)
        return 1

    print(f"Connected to {args.port} at {args.baud} baud")

    try:
        if args.reset:
            controller.reset()
        if args.send is not None:
            sent = controller.send(args.send, hex_mode=args.hex_input)
            print(f"Sent {len(sent)} bytes")

        start = time.time()
        offset = 0
        while args.duration <= 0 or time.time() - start < args.duration:
            controller.update()
            sys.stdout.write(controller.log.read_since(offset))
            sys.stdout.flush()
            offset = len(controller.log)
            time.sleep(0.05)

    except KeyboardInterrupt:
        pass
    except SerialMonitorError as e:
        print(f"\nError: {e}", file=sys.stderr)
    finally:
        controller.disconnect()

    print()
    print("=" * 60)
    print(f"Telemetry frames: {controller.frames_parsed}")
    for name in protocol.CHANNEL_NAMES:
        points = controller.snapshot(name)
        if points:
            values = [v for _, v in points]
            print(
                f"  {name}: {len(points)} points, "
                f"last={values[-1]:.3f} min={min(values):.3f} max={max(values):.3f}"
            )
        else:
            print(f"  {name}: no data")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
