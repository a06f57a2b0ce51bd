"""
Manual expiry of old report analyses.

NOTE: Automatic expiry is handled by AnalysisCleanupScheduler (runs daily at 3 AM UTC).
This script is provided for:
- Manual/emergency cleanup operations
- Testing the expiry logic in development
"""
import sys
import os

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.config import AI_ANALYSIS_RETENTION_DAYS
from core.database import SessionLocal
from services.report_service import ReportService


def main():
    retention_days = int(sys.argv[1]) if len(sys.argv) > 1 else AI_ANALYSIS_RETENTION_DAYS
    print(f"Expiring report analyses older than {retention_days} days...")
    db = SessionLocal()
    try:
        count = ReportService.expire_old_analyses(db, retention_days)
        print(f"Reset {count} report analyses to pending.")
    except Exception as e:
        print(f"Error during cleanup: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
