import os
from dotenv import load_dotenv

load_dotenv()

# Platform Fees (percent of the funded amount)
PLATFORM_FEE_PERCENT = float(os.getenv("PLATFORM_FEE_PERCENT", 5))
PROCESSING_FEE_PERCENT = float(os.getenv("PROCESSING_FEE_PERCENT", 2.9))

# Currency
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")

# Vault limits
MAX_VAULT_TRANSFER_CENTS = int(os.getenv("MAX_VAULT_TRANSFER_CENTS", 1_000_000_000))  # 10,000,000.00

# Approval window
APPROVAL_WINDOW_HOURS = int(os.getenv("APPROVAL_WINDOW_HOURS", 24))
APPROVAL_WARNING_HOURS = int(os.getenv("APPROVAL_WARNING_HOURS", 18))
ESCALATION_SWEEP_MINUTES = int(os.getenv("ESCALATION_SWEEP_MINUTES", 15))
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() == "true"

# Release the payout as soon as content is approved
AUTO_RELEASE_ON_APPROVAL = os.getenv("AUTO_RELEASE_ON_APPROVAL", "false").lower() == "true"

# Concierge
AUTO_APPROVAL_VIEW_THRESHOLD = int(os.getenv("AUTO_APPROVAL_VIEW_THRESHOLD", 5000))

# Frontend (payment redirects)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
