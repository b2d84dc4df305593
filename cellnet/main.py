"""Entry point for the cellnet simulation.

Usage:
    python -m cellnet --cells 10 --ticks 200
    python -m cellnet --headless --seed 42 --ticks 500
    python -m cellnet --serve --port 8001
    python -m cellnet --llm --llm-url http://localhost:11434/v1 --model llama3
"""

from __future__ import annotations

import argparse
import logging
import time

from cellnet.config import NetworkConfig
from cellnet.errors import PurposeError
from cellnet.network import CellNetwork
from cellnet.simulation.renderer import Renderer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cellnet",
        description="Simulate a network of autonomous cell agents.",
        epilog="Environment variables (override any setting): "
        "CELLNET_LLM_BASE_URL, CELLNET_LLM_API_KEY, CELLNET_MAX_CELLS, etc.",
    )
    parser.add_argument("--cells", type=int, default=10, help="Initial cell count (default: 10)")
    parser.add_argument("--ticks", type=int, default=200, help="Ticks to run (default: 200)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--delay", type=float, default=None, help="Seconds between ticks (default: config)"
    )
    parser.add_argument("--headless", action="store_true", help="No rendering, summary only")
    parser.add_argument("--purpose", type=str, default=None, help="Network purpose")
    parser.add_argument("--llm", action="store_true", help="Use LLM reasoning collaborators")
    parser.add_argument("--llm-url", type=str, default=None, help="OpenAI-compatible endpoint")
    parser.add_argument("--llm-key", type=str, default=None, help="API key for the endpoint")
    parser.add_argument("--model", type=str, default=None, help="LLM model name")
    parser.add_argument("--serve", action="store_true", help="Serve the JSON API and tick forever")
    parser.add_argument("--port", type=int, default=None, help="API port (default: 8001)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> NetworkConfig:
    """Apply CLI overrides on top of environment/default settings."""
    config = NetworkConfig()
    if args.seed is not None:
        config.seed = args.seed
    if args.delay is not None:
        config.tick_interval_seconds = args.delay
    if args.llm:
        config.llm_enabled = True
    if args.llm_url:
        config.llm_base_url = args.llm_url
    if args.llm_key:
        config.llm_api_key = args.llm_key
    if args.model:
        config.llm_model = args.model
    if args.port is not None:
        config.api_port = args.port
    return config


def main(argv: list[str] | None = None) -> int:
    """Run the simulation. Returns a process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = config_from_args(args)
    network = CellNetwork(config)
    network.initialize_network(args.cells)

    print("  cellnet v0.1.0")
    print(f"  Grid: {config.grid_size:.0f}x{config.grid_size:.0f} | Seed: {config.seed}")
    print(f"  Cells: {network.registry.count_living} | Ticks: {args.ticks}")
    if config.llm_enabled:
        print(f"  LLM: {config.llm_model} @ {config.llm_base_url or '(unset)'}")

    if args.purpose:
        try:
            guidance = network.set_purpose(args.purpose)
            print(f"  Guidance: {guidance}")
        except PurposeError as e:
            print(f"  Could not interpret purpose: {e}")
    print()

    if args.serve:
        return _serve(network, config)

    renderer = Renderer()
    delay = 0.0 if args.headless else config.tick_interval_seconds
    try:
        for _ in range(args.ticks):
            report = network.tick()
            if not args.headless:
                renderer.render(network.snapshot(), report)
            if network.registry.count_living == 0:
                print("  All cells have died.")
                break
            if delay:
                time.sleep(delay)
    except KeyboardInterrupt:
        print("\n  Interrupted.")

    renderer.render_summary(network.snapshot(), network.messages.total_messages)
    return 0


def _serve(network: CellNetwork, config: NetworkConfig) -> int:
    """Run the tick driver and API server until interrupted."""
    from cellnet.server.api import ApiServer
    from cellnet.simulation.driver import TickDriver

    driver = TickDriver(network)
    server = ApiServer(network, driver, host=config.api_host, port=config.api_port)
    server.start()
    server.wait_until_ready()
    driver.start()
    print(f"  API: http://{config.api_host}:{config.api_port}/api/state")
    reported: Exception | None = None
    try:
        # The driver may be stopped and restarted over the API; serve until interrupted.
        while server.is_running:
            if driver.last_error is not None and driver.last_error is not reported:
                reported = driver.last_error
                print(f"  Driver stopped after error: {reported}")
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\n  Shutting down.")
    finally:
        driver.stop()
        server.stop()
    return 0
