"""Headless tag monitor (dev/test only).

Usage examples:
  python scripts/opc_tag_monitor.py examples/codesys_gantry.json
  python scripts/opc_tag_monitor.py examples/codesys_gantry.json --simulate --write X_postion=12.5

With --simulate an in-process OPC UA simulator serves the catalog on the
configured endpoint's port on localhost.
"""
from __future__ import annotations

import argparse
import logging
import time

from opc_tag_client import ClientConfig, TagClientCore, TagClientError

log = logging.getLogger("opc_tag_monitor")


def _print_tag(tag):
    print(f"{tag.display_name:32} {tag.value:>20}  {tag.data_type.value:8} {tag.source_timestamp}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("config", help="client configuration (JSON)")
    parser.add_argument("--simulate", action="store_true", help="serve the catalog from a local simulator")
    parser.add_argument("--port", type=int, default=4840, help="simulator port")
    parser.add_argument("--write", action="append", default=[], metavar="NAME=VALUE")
    parser.add_argument("--cycle-ms", type=int, default=100, help="consumer cycle")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    config = ClientConfig.load(args.config)

    sim = None
    if args.simulate:
        from opc_tag_client.protocols.opc.simulator import OPCSimulator
        config.endpoint = f"opc.tcp://127.0.0.1:{args.port}"
        sim = OPCSimulator(endpoint=config.endpoint)
        sim.add_catalog(config)
        sim.start()

    client = TagClientCore(config)
    client.on("tag_updated", _print_tag)
    client.start()
    pending_writes = list(args.write)
    try:
        while True:
            client.process_pending()
            if pending_writes and client.connection.is_connected():
                name, _, value = pending_writes.pop(0).partition("=")
                try:
                    client.write_tag(name, value)
                except TagClientError as e:
                    log.error("write %s failed: %s", name, e)
            time.sleep(args.cycle_ms / 1000.0)
    except KeyboardInterrupt:
        print("Stopping...")
    finally:
        client.shutdown()
        if sim is not None:
            sim.stop()
