import sys, os
import argparse
import logging
import pathlib

# Ensure we are in the correct directory regardless of how this is called
SCRIPT_DIR = str(pathlib.Path(__file__).parent.absolute())
sys.path.insert(0, SCRIPT_DIR)
os.chdir(SCRIPT_DIR)

from dotenv import load_dotenv
load_dotenv()

from config import get_settings
from service_factory import build_services

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
    handlers=[logging.StreamHandler()]
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Send every workflow queue entry that is due.")
    parser.add_argument("--tenant", action="append", dest="tenants",
                        help="Tenant id to drain (repeatable). Defaults to POLL_TENANT_IDS.")
    parser.add_argument("--watch", action="store_true",
                        help="Keep polling every POLL_INTERVAL seconds instead of exiting.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    tenants = args.tenants or settings.poll_tenant_ids
    if not tenants:
        print("No tenants given. Pass --tenant or set POLL_TENANT_IDS.")
        return 2

    poller = build_services(settings).poller(tenant_ids=tenants)
    if args.watch:
        try:
            poller.start()
        except KeyboardInterrupt:
            poller.stop()
        return 0

    print("Starting One-Off Queue Run...")
    totals = poller.run_once()
    print(f"Finished: {totals['sent']} sent, {totals['skipped']} skipped, "
          f"{totals['failed']} failed, {totals['errors']} errors.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
