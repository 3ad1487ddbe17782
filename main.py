import argparse
import time
import schedule
import logging
import sys
from database.config import SessionLocal
from config.app_config import ESCALATION_SWEEP_MINUTES
from services.approval_service import run_approval_sweep

# Configure Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("approval_worker.log")
    ]
)


def run_sweep_cycle():
    logging.info("Starting approval deadline sweep...")
    try:
        result = run_approval_sweep(SessionLocal)
        logging.info(f"Sweep complete. {result['escalated']} escalated, {result['warned']} warned.")
    except Exception as e:
        logging.error(f"Error in approval sweep: {e}")


def start_scheduler():
    logging.info(f"Starting Approval Sweep Scheduler (every {ESCALATION_SWEEP_MINUTES} minutes)...")
    # Run once immediately
    run_sweep_cycle()

    schedule.every(ESCALATION_SWEEP_MINUTES).minutes.do(run_sweep_cycle)

    while True:
        schedule.run_pending()
        time.sleep(30)


def main():
    parser = argparse.ArgumentParser(description="Reachstakes Approval Worker")
    parser.add_argument("--mode", choices=["once", "schedule"], default="schedule", help="Run once or schedule")
    args = parser.parse_args()

    if args.mode == "schedule":
        start_scheduler()
    else:
        run_sweep_cycle()


if __name__ == "__main__":
    main()
