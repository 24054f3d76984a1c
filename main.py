import argparse
import time
import schedule
import logging
import sys

from config.app_config import LOG_LEVEL, TASK_POLL_INTERVAL_SECONDS
from workers.task_worker import run_task_cycle

# Configure Logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("task_worker.log")
    ]
)

def run_cycle():
    logging.info("Starting outbox cycle...")
    try:
        results = run_task_cycle()
        logging.info(f"Cycle complete. payouts={results['payouts']} messages={results['messages']}")
    except Exception as e:
        logging.error(f"Error in outbox cycle: {e}", exc_info=True)

def start_scheduler():
    logging.info(f"Starting Task Worker (every {TASK_POLL_INTERVAL_SECONDS}s)...")
    # Run once immediately
    run_cycle()

    schedule.every(TASK_POLL_INTERVAL_SECONDS).seconds.do(run_cycle)

    while True:
        schedule.run_pending()
        time.sleep(1)

def main():
    parser = argparse.ArgumentParser(description="Affiliate payout and notification worker")
    parser.add_argument("--mode", choices=["once", "schedule"], default="schedule", help="Run once or schedule")
    args = parser.parse_args()

    if args.mode == "schedule":
        start_scheduler()
    else:
        run_cycle()

if __name__ == "__main__":
    main()
